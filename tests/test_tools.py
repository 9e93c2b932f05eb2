import unittest
from unittest.mock import MagicMock, patch

import requests

from agentflow.runtime import Runtime
from agentflow.tools.base import Tool, ToolRegistry
from agentflow.tools.builtin import default_tool_registry
from agentflow.tools.calculator import calculate, evaluate
from agentflow.tools.rag_search import make_rag_tool
from agentflow.tools.web import FALLBACK_RESULTS, html_to_text, http_request, search_web


class TestCalculator(unittest.TestCase):
    def test_basic_arithmetic(self):
        self.assertEqual(evaluate("2+2"), 4)
        self.assertEqual(evaluate("45 * 23"), 1035)
        self.assertEqual(evaluate("(1 + 2) * 3 - 4 / 2"), 7)
        self.assertEqual(evaluate("7 % 3"), 1)
        self.assertAlmostEqual(evaluate("10 / 4"), 2.5)

    def test_strips_non_math_characters(self):
        # Letters are dropped before parsing, so no names can be evaluated
        self.assertEqual(evaluate("what is 3*3?"), 9)

    def test_invalid_expression(self):
        result = calculate({"expression": "abc"})
        self.assertFalse(result["success"])
        self.assertEqual(result["message"], "Invalid mathematical expression. Please check your input.")

    def test_division_by_zero(self):
        self.assertFalse(calculate({"expression": "1/0"})["success"])

    def test_power(self):
        self.assertEqual(evaluate("2**10"), 1024)
        self.assertAlmostEqual(evaluate("2**-1"), 0.5)

    def test_huge_power_fails_fast(self):
        result = calculate({"expression": "9**9**9"})
        self.assertFalse(result["success"])
        self.assertEqual(result["expression"], "9**9**9")

    def test_result_shape(self):
        self.assertEqual(calculate({"expression": "2+2"}), {"success": True, "expression": "2+2", "result": 4})


class TestHttpTool(unittest.TestCase):
    @patch("agentflow.tools.web.requests.request")
    def test_json_response(self, mock_request):
        response = MagicMock(ok=True, status_code=200, reason="OK", headers={"Content-Type": "application/json"})
        response.json.return_value = {"hello": "world"}
        mock_request.return_value = response

        result = http_request({"url": "https://api.example.com", "method": "post", "body": {"a": 1}})

        self.assertTrue(result["success"])
        self.assertEqual(result["data"], {"hello": "world"})
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("POST", "https://api.example.com"))
        self.assertEqual(kwargs["json"], {"a": 1})
        self.assertEqual(kwargs["timeout"], 30)

    @patch("agentflow.tools.web.requests.request")
    def test_text_fallback(self, mock_request):
        response = MagicMock(ok=False, status_code=404, reason="Not Found", headers={}, text="missing")
        response.json.side_effect = ValueError("not json")
        mock_request.return_value = response

        result = http_request({"url": "https://api.example.com/x"})

        self.assertFalse(result["success"])
        self.assertEqual(result["status"], 404)
        self.assertEqual(result["data"], "missing")

    @patch("agentflow.tools.web.requests.request")
    def test_html_is_reduced_to_text(self, mock_request):
        html = "<html><head><style>p {}</style></head><body><nav>Menu</nav><p>Hello</p><script>x()</script></body></html>"
        response = MagicMock(ok=True, status_code=200, reason="OK", headers={"Content-Type": "text/html"}, text=html)
        response.json.side_effect = ValueError("not json")
        mock_request.return_value = response

        self.assertEqual(http_request({"url": "https://example.com"})["data"], "Hello")

    def test_html_to_text_limit(self):
        self.assertEqual(html_to_text("<p>abcdef</p>", max_chars=3), "abc...")

    @patch("agentflow.tools.web.requests.request")
    def test_network_error(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("refused")
        result = http_request({"url": "https://down.example.com"})
        self.assertFalse(result["success"])
        self.assertIn("refused", result["error"])

    def test_requires_url(self):
        self.assertFalse(http_request({})["success"])


class TestSearchTool(unittest.TestCase):
    @patch("agentflow.tools.web.DDGS")
    def test_search(self, mock_ddgs):
        mock_ddgs.return_value.text.return_value = [
            {"title": "Cats", "href": "https://example.com/cats", "body": "All about cats."},
            {"title": "", "href": "https://example.org/more", "body": ""},
        ]

        result = search_web({"query": "cats", "numResults": 2})

        self.assertTrue(result["success"])
        self.assertEqual(result["count"], 2)
        self.assertEqual(result["results"][0], {"title": "Cats", "snippet": "All about cats.", "url": "https://example.com/cats"})
        self.assertEqual(result["results"][1]["snippet"], "No description available")
        mock_ddgs.return_value.text.assert_called_once_with("cats", max_results=2)

    @patch("agentflow.tools.web.DDGS")
    def test_fallback_when_nothing_found(self, mock_ddgs):
        mock_ddgs.return_value.text.return_value = []
        result = search_web({"query": "cats"})
        self.assertTrue(result["success"])
        self.assertEqual(result["count"], len(FALLBACK_RESULTS))
        self.assertIn("fallback", result["message"])

    @patch("agentflow.tools.web.DDGS")
    def test_search_error(self, mock_ddgs):
        mock_ddgs.return_value.text.side_effect = RuntimeError("ratelimit")
        result = search_web({"query": "cats"})
        self.assertFalse(result["success"])
        self.assertIn("ratelimit", result["message"])

    def test_requires_query(self):
        self.assertFalse(search_web({"query": "  "})["success"])


class TestRegistry(unittest.TestCase):
    def test_default_tools(self):
        registry = default_tool_registry()
        self.assertEqual(registry.names(), ["calculator", "http_request", "search_web"])

    def test_runtime_logs_registered_tools(self):
        with self.assertLogs("agentflow.runtime", level="INFO") as logs:
            Runtime(chat_model_factory=MagicMock(), rag=MagicMock())
        self.assertIn("calculator, http_request, search_web, rag_search", logs.output[0])

    def test_unknown_names_skipped(self):
        registry = default_tool_registry()
        self.assertEqual([t.name for t in registry.get_tools(["calculator", "nope"])], ["calculator"])

    def test_openai_schema(self):
        tool = Tool("echo", "Echo input", lambda p: p, {"text": "Text to echo"})
        schema = ToolRegistry([tool]).openai_schemas()[0]
        self.assertEqual(schema["function"]["name"], "echo")
        self.assertEqual(schema["function"]["parameters"]["required"], ["text"])

    def test_rag_search_tool(self):
        rag = MagicMock()
        rag.query.return_value = [{"content": "Paris is the capital", "metadata": {"source": "geo.txt"}, "score": 0.9}]
        registry = default_tool_registry(lambda: rag)

        result = registry.get("rag_search").invoke({"query": "capital of France", "k": 2})

        self.assertTrue(result["success"])
        rag.query.assert_called_once()
        self.assertEqual(rag.query.call_args.args[0], "capital of France")

    def test_rag_search_requires_query(self):
        tool = make_rag_tool(lambda: MagicMock())
        self.assertFalse(tool.invoke({})["success"])


if __name__ == "__main__":
    unittest.main()
