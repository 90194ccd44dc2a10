import pytest
import requests
from django.core.cache import cache
from rest_framework.test import APIClient

from apps.exchange.domain.services import get_rate_resolver


@pytest.fixture(autouse=True)
def fresh_state():
    """Every test starts with a new resolver and an empty Django cache."""
    get_rate_resolver.cache_clear()
    cache.clear()
    yield
    get_rate_resolver.cache_clear()
    cache.clear()


@pytest.fixture(autouse=True)
def mock_requests_get(mocker):
    """No test reaches the network; the provider is unreachable unless a test says otherwise."""
    return mocker.patch("requests.get", side_effect=requests.exceptions.ConnectionError("network disabled"))


@pytest.fixture
def api_response(mocker):
    """Build a fake provider response carrying the given rate table."""

    def _build(rates, status_code=200):
        response = mocker.Mock()
        response.status_code = status_code
        response.json.return_value = {"base": "ZAR", "rates": rates}
        response.raise_for_status.return_value = None
        return response

    return _build


@pytest.fixture
def api_client():
    """DRF API client."""
    return APIClient()


@pytest.fixture
def admin_user(django_user_model):
    return django_user_model.objects.create_superuser(username="operator", password="secret", email="ops@example.com")


@pytest.fixture
def admin_client(api_client, admin_user):
    api_client.force_authenticate(user=admin_user)
    return api_client
