"""Business logic layer for accounts app.

- Login sessions (bearer tokens)
- Request authorization strategies
"""
