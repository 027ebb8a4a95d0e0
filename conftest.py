"""
Pytest configuration and boundary enforcement for rezcore
Marks determinism-critical test modules and keeps their fixtures function-scoped
"""

import pytest
import warnings

# Modules whose assertions pin bytes and hashes shared with other services
SENSITIVE_MODULES = {
    'test_canonical_utils',
    'test_plan_hash',
    'test_pit',
    'test_replay_order',
}

# Stateless fixtures allowed a broader scope
WHITELISTED_FIXTURES = {
    'golden_plan_input',
}


def pytest_configure(config):
    """Configure pytest with strict settings"""
    if config.getoption("-m") and "sensitive" in config.getoption("-m"):
        warnings.filterwarnings("error", category=DeprecationWarning)
        warnings.filterwarnings("error", category=PendingDeprecationWarning)

    config.addinivalue_line(
        "markers", "sensitive: Tests that must be deterministic and isolated"
    )
    config.addinivalue_line(
        "markers", "boundary: Tests that verify edge and limit behavior"
    )


def pytest_collection_modifyitems(config, items):
    """Mark sensitive tests automatically based on module name"""
    for item in items:
        module_name = item.module.__name__.rsplit('.', 1)[-1]
        if module_name in SENSITIVE_MODULES:
            item.add_marker(pytest.mark.sensitive)
            _check_fixture_scopes(item)


def _check_fixture_scopes(item):
    """Sensitive tests may only use function-scoped fixtures"""
    fixture_info = getattr(item, "_fixtureinfo", None)
    if fixture_info is None:
        return

    for fixture_name, definitions in fixture_info.name2fixturedefs.items():
        if fixture_name in WHITELISTED_FIXTURES or not definitions:
            continue

        # Plugin and builtin fixtures are registered without a baseid
        if not definitions[-1].baseid:
            continue

        scope = definitions[-1].scope
        if scope != 'function':
            pytest.fail(
                f"FIXTURE SCOPE VIOLATION in {item.nodeid}:\n"
                f"Fixture '{fixture_name}' has scope='{scope}' but sensitive tests "
                f"require scope='function'. Add it to WHITELISTED_FIXTURES if it is stateless."
            )
