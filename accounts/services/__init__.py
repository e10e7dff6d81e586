"""
High-level use cases for the accounts service.

Each service module orchestrates repositories/adapters to implement the
business rules (register, verify e-mail, reset password, log in, subscribe,
reconcile). Routers call these services instead of touching the database
or the payment provider directly.
"""
