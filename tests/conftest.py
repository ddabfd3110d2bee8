import pytest

from tests.helpers import make_policy


@pytest.fixture
def default_policy():
    """Namespace policy with a 50Mi default request and a 64Mi default limit."""
    return make_policy(default_request="50Mi", default_limit="64Mi")
