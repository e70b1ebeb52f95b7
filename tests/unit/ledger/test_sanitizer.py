"""
Unit Tests for the HTML Allow-list Sanitizer
"""

import pytest

from microservices.campaign_service.protocols import HtmlSanitizerProtocol
from microservices.campaign_service.sanitizer import AllowListSanitizer

pytestmark = pytest.mark.unit


@pytest.fixture
def sanitizer():
    return AllowListSanitizer()


class TestAllowListSanitizer:

    def test_satisfies_protocol(self, sanitizer):
        assert isinstance(sanitizer, HtmlSanitizerProtocol)

    def test_keeps_allowed_formatting(self, sanitizer):
        html = "<p>Hello <strong>world</strong> and <em>friends</em></p>"
        assert sanitizer.sanitize(html) == html

    def test_keeps_lists_and_headings(self, sanitizer):
        html = "<h2>Plan</h2><ul><li>Vet</li><li>Food</li></ul>"
        assert sanitizer.sanitize(html) == html

    def test_drops_script_with_content(self, sanitizer):
        result = sanitizer.sanitize("<p>Hi</p><script>alert('x')</script>")
        assert result == "<p>Hi</p>"

    def test_drops_disallowed_tags_keeps_text(self, sanitizer):
        assert sanitizer.sanitize("<div><span>plain</span></div>") == "plain"

    def test_strips_event_handler_attributes(self, sanitizer):
        result = sanitizer.sanitize('<p onclick="steal()">text</p>')
        assert result == "<p>text</p>"

    def test_keeps_safe_link(self, sanitizer):
        result = sanitizer.sanitize('<a href="https://example.com" target="_blank" rel="noopener">site</a>')
        assert result == '<a href="https://example.com" target="_blank" rel="noopener">site</a>'

    def test_drops_javascript_href(self, sanitizer):
        result = sanitizer.sanitize('<a href="javascript:alert(1)">click</a>')
        assert result == "<a>click</a>"

    def test_escapes_text(self, sanitizer):
        assert sanitizer.sanitize("5 < 6 & 7 > 3") == "5 &lt; 6 &amp; 7 &gt; 3"

    def test_closes_unclosed_tags(self, sanitizer):
        assert sanitizer.sanitize("<p><strong>bold") == "<p><strong>bold</strong></p>"

    def test_void_tags(self, sanitizer):
        assert sanitizer.sanitize("line<br>next<br/>end<hr>") == "line<br>next<br>end<hr>"

    def test_drops_form_controls(self, sanitizer):
        result = sanitizer.sanitize('<form><input name="x"><button>Go</button></form><p>after</p>')
        assert result == "<p>after</p>"

    def test_input_outside_form_is_dropped_without_eating_text(self, sanitizer):
        assert sanitizer.sanitize('<p>a<input type="text">b</p>') == "<p>ab</p>"

    def test_empty(self, sanitizer):
        assert sanitizer.sanitize("") == ""
