"""Tests for Rootly URL construction and configuration."""

from __future__ import annotations

import pytest

from adapters.lib.errors import DatasourceConfigError
from adapters.rootly.config import RootlyConfig
from adapters.rootly.endpoint import RootlyRequest, construct_endpoint

BASE = "https://api.rootly.com/v1"


def rootly_request(**kwargs):
    kwargs.setdefault("page_size", 10)
    return RootlyRequest(base_url=BASE, authorization="Bearer t", entity="incidents", **kwargs)


class TestConstructEndpoint:
    """Tests for construct_endpoint."""

    def test_first_page(self):
        """Test that no cursor requests page one."""
        assert construct_endpoint(rootly_request()) == (
            f"{BASE}/incidents?page%5Bnumber%5D=1&page%5Bsize%5D=10"
        )

    def test_cursor_is_page_number(self):
        """Test that the cursor selects the page."""
        assert construct_endpoint(rootly_request(cursor="4")) == (
            f"{BASE}/incidents?page%5Bnumber%5D=4&page%5Bsize%5D=10"
        )

    def test_parameters_are_sorted(self):
        """Test filters, include and paging parameters together, sorted by name."""
        request = rootly_request(
            page_size=50,
            cursor="3",
            filter="status=started&severity=high",
            includes="form_field_selections",
        )
        assert construct_endpoint(request) == (
            f"{BASE}/incidents?filter%5Bseverity%5D=high&filter%5Bstatus%5D=started"
            "&include=form_field_selections&page%5Bnumber%5D=3&page%5Bsize%5D=50"
        )

    def test_filter_values_are_escaped(self):
        """Test that filter values are query-escaped."""
        request = rootly_request(filter="email=rufus raynor@hegmann.test")
        assert "filter%5Bemail%5D=rufus+raynor%40hegmann.test" in construct_endpoint(request)

    def test_unparseable_filter_is_dropped(self):
        """Test that a filter which is not a query string adds nothing."""
        request = rootly_request(filter="not-a-query")
        assert construct_endpoint(request) == f"{BASE}/incidents?page%5Bnumber%5D=1&page%5Bsize%5D=10"

    def test_zero_page_size_is_omitted(self):
        """Test that page[size] is only sent when positive."""
        assert construct_endpoint(rootly_request(page_size=0)) == f"{BASE}/incidents?page%5Bnumber%5D=1"


class TestRootlyConfig:
    """Tests for RootlyConfig."""

    def test_from_dict(self):
        """Test that the camelCase document is read."""
        config = RootlyConfig.from_dict(
            {
                "apiVersion": "v1",
                "requestTimeoutSeconds": 30,
                "filters": {"users": "email=a@b.test"},
                "includes": {"incidents": "form_field_selections"},
            }
        )
        assert config.api_version == "v1"
        assert config.common.request_timeout_seconds == 30
        assert config.filters == {"users": "email=a@b.test"}
        assert config.includes == {"incidents": "form_field_selections"}

    def test_missing_api_version_defaults_to_v1(self):
        """Test that a document without apiVersion gets the dataclass default."""
        config = RootlyConfig.from_dict({})
        config.validate()
        assert config.api_version == RootlyConfig().api_version == "v1"

    def test_empty_api_version_is_invalid(self):
        """Test that an explicitly empty apiVersion is rejected."""
        with pytest.raises(DatasourceConfigError, match="Rootly config is invalid: apiVersion is not set."):
            RootlyConfig.from_dict({"apiVersion": ""}).validate()

    def test_unsupported_api_version(self):
        """Test that only v1 is supported."""
        with pytest.raises(DatasourceConfigError, match="apiVersion is not supported: v2."):
            RootlyConfig(api_version="v2").validate()

    def test_filters_must_be_a_mapping(self):
        """Test that filters must map entities to strings."""
        with pytest.raises(DatasourceConfigError, match="filters must be a mapping"):
            RootlyConfig.from_dict({"apiVersion": "v1", "filters": ["status=started"]})
