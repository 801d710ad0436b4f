"""
Test Suite

    tests/
    ├── conftest.py                  # Fixtures (in-memory repositories)
    ├── builders.py                  # Workflow definition builders
    ├── test_condition_evaluator.py
    ├── test_workflow_graph.py
    ├── test_approval_engine.py
    ├── test_workflow_validator.py
    ├── test_instance_service.py
    └── test_api.py

To run tests:
    pytest
"""
