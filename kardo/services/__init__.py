"""
High-level use cases for the Kardo service.

Each module orchestrates the repository to implement one business rule (resolve
a card code, generate codes, render a vCard, claim a card, edit a profile).
Routers call these services instead of touching sessions directly, and map
their typed outcomes to HTTP responses.
"""
