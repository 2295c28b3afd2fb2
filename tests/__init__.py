"""adapter-foundry test suite.

Test organization:
- test_pagination.py / test_accumulator.py: composite cursor walks and page filling
- test_azuread_*.py: Graph endpoints, datasource, advanced and implicit filters
- test_rootly_*.py: Rootly endpoints, includes and adapter
- test_config.py / test_resilience.py / test_errors.py: shared infrastructure
- test_cli.py: the adapter-foundry command line

In-memory Graph data for datasource tests lives in conftest.py.
"""
