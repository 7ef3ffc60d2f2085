"""Tests for configuration loading and the diagnostics rows."""
from managed_login.config import NOT_CONFIGURED, SCOPES, IdentityConfig, load_config


def test_load_config_reads_environment():
    config = load_config(
        {
            "COGNITO_REGION": "ap-northeast-1",
            "COGNITO_USER_POOL_ID": "ap-northeast-1_abc",
            "COGNITO_CLIENT_ID": "client123",
            "COGNITO_DOMAIN": "demo.auth.ap-northeast-1.amazoncognito.com",
            "COGNITO_REDIRECT_SIGN_IN": "http://localhost:8000/",
            "COGNITO_REDIRECT_SIGN_OUT": "http://localhost:8000/",
        }
    )
    assert config.region == "ap-northeast-1"
    assert config.client_id == "client123"
    assert config.redirect_sign_out == "http://localhost:8000/"
    assert config.language == "ja"
    assert config.scopes == SCOPES


def test_load_config_tolerates_missing_and_blank_values():
    config = load_config({"COGNITO_REGION": "  "})
    assert config == IdentityConfig()


def test_scope_string():
    assert IdentityConfig().scope == "email openid aws.cognito.signin.user.admin profile"


def test_base_url_adds_https_for_bare_domain():
    assert IdentityConfig(domain="demo.auth.example.com").base_url == "https://demo.auth.example.com"
    assert IdentityConfig(domain="http://127.0.0.1:9000/").base_url == "http://127.0.0.1:9000"
    assert IdentityConfig().base_url is None
    assert IdentityConfig().endpoint("/oauth2/token") is None


def test_diagnostics_unconfigured():
    rows = dict(IdentityConfig().diagnostics())
    assert rows == {
        "Region": NOT_CONFIGURED,
        "User Pool ID": NOT_CONFIGURED,
        "Client ID": NOT_CONFIGURED,
        "Domain": NOT_CONFIGURED,
        "Redirect URL": NOT_CONFIGURED,
    }


def test_diagnostics_hides_identifiers():
    config = IdentityConfig(
        region="us-east-1",
        user_pool_id="us-east-1_secretish",
        client_id="client123",
        domain="demo.auth.example.com",
        redirect_sign_in="http://localhost:8000/",
    )
    rows = dict(config.diagnostics())
    assert rows["Region"] == "us-east-1"
    assert rows["User Pool ID"] == "configured"
    assert rows["Client ID"] == "configured"
    assert rows["Redirect URL"] == "http://localhost:8000/"
    assert "client123" not in str(rows)
