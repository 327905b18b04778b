"""Tests for security headers middleware.

Verifies that all required security headers are present on responses.
"""


class TestSecurityHeaders:
    """Tests for SecurityHeadersMiddleware."""

    def test_x_content_type_options_header(self, client):
        """Test that X-Content-Type-Options is nosniff."""
        response = client.get("/api/health")
        assert response.headers.get("X-Content-Type-Options") == "nosniff"

    def test_x_frame_options_header(self, client):
        """Test that X-Frame-Options is DENY."""
        response = client.get("/api/health")
        assert response.headers.get("X-Frame-Options") == "DENY"

    def test_content_security_policy_header(self, client):
        """Test that the CSP restricts defaults to self."""
        csp = client.get("/api/health").headers.get("Content-Security-Policy")
        assert csp is not None
        assert "default-src 'self'" in csp
        assert "object-src 'none'" in csp

    def test_referrer_policy_header(self, client):
        response = client.get("/api/health")
        assert response.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"

    def test_hsts_header_with_https(self, client):
        """HSTS is set when X-Forwarded-Proto is https."""
        response = client.get("/api/health", headers={"X-Forwarded-Proto": "https"})
        hsts = response.headers.get("Strict-Transport-Security")
        assert hsts is not None
        assert "max-age" in hsts
        assert "includeSubDomains" in hsts

    def test_hsts_header_not_set_for_http(self, client):
        """Test that HSTS is not sent over plain HTTP."""
        response = client.get("/api/health")
        assert "Strict-Transport-Security" not in response.headers

    def test_security_headers_on_csrf_rejection(self, client):
        """Headers are present on 403 responses produced by the CSRF guard."""
        response = client.post("/contact", headers={"Accept": "application/json"})

        assert response.status_code == 403
        assert response.headers.get("X-Content-Type-Options") == "nosniff"
        assert response.headers.get("X-Frame-Options") == "DENY"
