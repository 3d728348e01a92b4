"""Tests for domain normalization and configuration resolution."""

import pytest

from scrapeflow.exceptions import ConfigurationAbsentError
from scrapeflow.models import DomainConfig, StrategyType
from scrapeflow.registry import GENERIC_DOMAIN, DomainRegistry, normalize_domain


# ============================================================================
# TESTS: NORMALIZATION
# ============================================================================

class TestNormalizeDomain:
    """Tests for normalize_domain()."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("https://www.AutoScout24.fr/lst?atype=C", "autoscout24.fr"),
            ("http://ebay.fr/sch/i.html", "ebay.fr"),
            ("www.amazon.fr", "amazon.fr"),
            ("https://www.www.example.com/a", "example.com"),
            ("  EBAY  ", "ebay"),
            ("shop.example.com?x=1", "shop.example.com"),
            ("example.com#top", "example.com"),
        ],
    )
    def test_normalize(self, raw, expected):
        """Test scheme, www, case and path are stripped."""
        assert normalize_domain(raw) == expected

    @pytest.mark.parametrize("raw", ["https://www.ebay.fr/x", "autoscout24", "Sub.Domain.COM/a/b", "www.www.example.com"])
    def test_idempotent(self, raw):
        """Test normalizing twice changes nothing."""
        once = normalize_domain(raw)
        assert normalize_domain(once) == once

    def test_empty(self):
        assert normalize_domain("") == ""


# ============================================================================
# TESTS: RESOLUTION
# ============================================================================

class TestDomainRegistry:
    """Tests for DomainRegistry.get_config() resolution order."""

    def test_exact_match(self, registry: DomainRegistry):
        config = registry.get_config("https://www.ebay.com/sch/i.html?_nkw=x")
        assert config.domain == "ebay.com"
        assert config.requires_javascript is False

    def test_bare_alias(self, registry: DomainRegistry):
        """Test bare identifiers without a TLD resolve through aliases."""
        assert registry.get_config("autoscout24").domain == "autoscout24.fr"
        assert registry.get_config("ebay").domain == "ebay.fr"

    def test_subdomain_match(self, registry: DomainRegistry):
        """Test subdomains resolve to the registered parent domain."""
        assert registry.get_config("m.ebay.fr").domain == "ebay.fr"
        assert registry.get_config("https://fr.autoscout24.fr/lst").domain == "autoscout24.fr"

    def test_unknown_domain_falls_back_to_generic(self, registry: DomainRegistry):
        config = registry.get_config("unknown-shop.example")
        assert config.domain == GENERIC_DOMAIN
        assert config.requires_javascript is False
        assert config.default_strategy is StrategyType.LIGHTWEIGHT
        assert "article" in config.selectors["container"]

    def test_generic_fallback_is_a_copy(self, registry: DomainRegistry):
        """Test callers cannot mutate the shared generic config."""
        config = registry.get_config("nowhere.test")
        config.selectors["container"] = "mutated"
        assert registry.get_config("nowhere.test").selectors["container"] != "mutated"

    def test_strict_lookup_raises(self, registry: DomainRegistry):
        with pytest.raises(ConfigurationAbsentError, match="nowhere.test"):
            registry.lookup("nowhere.test")

    def test_leboncoin_uses_direct_api(self, registry: DomainRegistry):
        assert registry.get_config("leboncoin").default_strategy is StrategyType.DIRECT_API

    def test_autoscout24_options(self, registry: DomainRegistry):
        config = registry.get_config("autoscout24.fr")
        assert config.requires_javascript is True
        assert config.delay_range((1000, 2000)) == (1500, 2500)
        assert config.options["default_search_url"].startswith("https://www.autoscout24.fr/lst?")

    def test_register_domain_upserts(self, registry: DomainRegistry):
        """Test registering twice keeps one entry with the latest config."""
        registry.register_domain(DomainConfig(domain="https://www.Shop.test/", selectors={"container": ".a"}))
        registry.register_domain(
            DomainConfig(domain="shop.test", selectors={"container": ".b"}, requires_javascript=True)
        )

        assert registry.list_domains().count("shop.test") == 1
        config = registry.get_config("shop.test")
        assert config.selectors["container"] == ".b"
        assert config.requires_javascript is True

    def test_longest_key_wins(self):
        """Test the most specific registered key is chosen."""
        registry = DomainRegistry(
            configs=[
                DomainConfig(domain="example.com", selectors={"container": ".short"}),
                DomainConfig(domain="shop.example.com", selectors={"container": ".long"}),
            ]
        )
        assert registry.get_config("eu.shop.example.com").selectors["container"] == ".long"

    def test_config_requires_container(self):
        with pytest.raises(ValueError, match="container"):
            DomainConfig(domain="x.test", selectors={"title": "h1"})
