"""
nexusbot Test Suite
===================

Test Organization
-----------------
- tests/unit/          : Fast tests against fakes and a throwaway SQLite file
- tests/integration/   : Tests against PostgreSQL via testcontainers (need Docker)
- tests/fakes.py       : Transport provider and connection handle doubles

Testing Philosophy
------------------
- Unit tests drive the connection core through the same events a real
  transport emits
- Use pytest markers (integration, database) to select suites
- Follow AAA pattern: Arrange, Act, Assert
"""
