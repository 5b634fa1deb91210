"""
Mahoya Test Suite
=================

Test Organization
-----------------
- tests/unit/          : Fast unit tests against the in-memory fake store and mocks
- tests/integration/   : SQLAlchemy store and DatabaseService against a temp SQLite file

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test business rules
- Integration tests: Exercise the real SQL paths (constraints, conditional updates)
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
