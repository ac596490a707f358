# Overview: Configuration defaults and overrides consumed by the services.

from gudang.config import Config
from gudang.services import analytics_service


class TestConfig:

    def test_config_keys(self):
        keys = {k for k in vars(Config) if k.isupper()}
        assert keys == {
            "SECRET_KEY",
            "SQLALCHEMY_DATABASE_URI",
            "SQLALCHEMY_TRACK_MODIFICATIONS",
            "LOG_LEVEL",
            "TX_RETRY_ATTEMPTS",
            "TX_RETRY_BACKOFF",
            "DASHBOARD_DEFAULT_LIMIT",
            "ACTIVITY_DEFAULT_LIMIT",
            "CENTRAL_LABEL",
            "UNKNOWN_OUTLET_LABEL",
            "ACCESS_SCOPE_RESOLVER",
        }

    def test_dashboard_limit_override(self, app, db_session, make_product, monkeypatch):
        for i in range(3):
            make_product(name=f"Item {i}", stock=0, minimum_low_stock=1)
        monkeypatch.setitem(app.config, "DASHBOARD_DEFAULT_LIMIT", 2)
        assert len(analytics_service.low_stock_priorities()) == 2
