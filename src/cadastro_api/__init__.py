"""
Cadastro API: departamentos, empresas and user accounts over FastAPI.

Modules:
- config: environment-backed immutable settings
- logging: structlog configuration
- exceptions: application error hierarchy
- db: PostgreSQL connection pooling + statement execution
- query_builder: parameterized filter / partial-update construction
- auth_utils: password hashing, JWT issuance/verification, bearer gate
- services: per-resource operations
- schemas: Pydantic models for the REST API
"""
