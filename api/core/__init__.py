"""
Shared, cross-cutting code for the API.

`core/` holds the building blocks features depend on: settings, logging,
the document store contract and the domain errors. Collection layout and
business rules live in the feature package (e.g. `models/`).
"""
