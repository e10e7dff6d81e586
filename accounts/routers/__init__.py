"""
FastAPI routers grouped by feature (auth, account, subscription, hooks).
"""
