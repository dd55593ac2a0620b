"""
Integration tests package.

Tests de integración que verifican el funcionamiento correcto de:
- Repositorios SQL (índices únicos parciales, compare-and-set, outbox)
- Holds concurrentes sobre SQLite real
- Rollback de la unidad de trabajo
- Health Checks
- Deadlock Retry

Para ejecutar solo tests de integración:
    pytest tests/integration/ -m integration
"""
