"""
High-level use cases for the marketplace API.

Each service orchestrates repositories to implement business rules
(list NFTs, subscribe to a plan, reset a password, ...). Routers call these
services instead of touching sessions directly.
"""
