"""
Tests for LLM-backed suggestions and analysis, and their deterministic fallbacks.
"""

import pytest
from langchain_core.messages import AIMessage

from app.llm import LLMClient, LLMError, load_json_payload
from core.models import AnalysisOptions, ChartKind, Dataset
from skills.insights import NON_JSON_SUMMARY, analyze_dataset, build_system_prompt, fallback_analysis
from skills.suggest import coerce_suggestions, fallback_suggestions, suggest_visualizations


class TestFallbackSuggestions:
    """Deterministic suggestions from the candidate pools."""

    def test_sales_dataset(self, sales_dataset):
        suggestions = fallback_suggestions(sales_dataset)
        kinds = [s.chart_type for s in suggestions]
        assert kinds == [ChartKind.line, ChartKind.bar, ChartKind.pie, ChartKind.line]
        assert suggestions[0].config.title == "sales Over Time"
        assert suggestions[1].config.x_axis == "region"
        assert suggestions[3].config.group_by == "region"

    def test_scatter_with_two_measures(self):
        rows = [{"a": i + 1, "b": (i * 7) % 5 + 1} for i in range(10)]
        suggestions = fallback_suggestions(Dataset(headers=["a", "b"], rows=rows))
        scatter = [s for s in suggestions if s.chart_type == ChartKind.scatter]
        assert len(scatter) == 1
        assert scatter[0].config.title == "Relationship Between a and b"

    def test_overview_when_nothing_else(self):
        rows = [{"name": f"n{i}x", "amount": i + 1} for i in range(30)]
        suggestions = fallback_suggestions(Dataset(headers=["name", "amount"], rows=rows))
        assert len(suggestions) == 1
        assert suggestions[0].config.x_axis == "name"
        assert suggestions[0].config.title == "amount Overview"

    def test_no_measures_no_suggestions(self, id_only_dataset):
        assert fallback_suggestions(id_only_dataset) == []

    def test_shape(self, sales_dataset):
        dumped = fallback_suggestions(sales_dataset)[3].model_dump(mode="json", by_alias=True)
        assert dumped == {
            "chartType": "line",
            "config": {
                "xAxis": "date",
                "yAxis": "sales",
                "groupBy": "region",
                "title": "sales Over Time by region",
            },
            "description": "Compares how sales trends over time across different region categories.",
        }


class TestLLMSuggestions:
    """Coercion of LLM output and fallback behaviour."""

    def test_valid_entries_kept(self, sales_dataset, fake_llm):
        llm = fake_llm(payload={"suggestions": [
            {"chartType": "line", "xAxis": "date", "yAxis": "sales", "groupBy": "region",
             "title": "Sales", "description": "d"},
            {"chartType": "donut", "xAxis": "region", "yAxis": "sales"},
            {"chartType": "bar", "xAxis": "nope", "yAxis": "sales"},
        ]})
        suggestions = suggest_visualizations(sales_dataset, llm=llm)
        assert len(suggestions) == 1
        assert suggestions[0].config.group_by == "region"
        assert suggestions[0].description == "d"

    def test_dict_of_objects_and_nested_config(self):
        payload = {
            "first": {"chartType": "bar", "config": {"xAxis": "region", "yAxis": "sales", "groupBy": "x"}},
            "second": {"chartType": "pie", "xAxis": "region", "yAxis": "sales", "rationale": "why"},
            "note": "ignored",
        }
        suggestions = coerce_suggestions(payload, ["date", "region", "sales"])
        assert [s.chart_type for s in suggestions] == [ChartKind.bar, ChartKind.pie]
        assert suggestions[0].config.group_by is None
        assert suggestions[0].config.title == "sales by region"
        assert suggestions[1].description == "why"

    def test_sample_is_capped(self, fake_llm):
        rows = [{"v": i + 1} for i in range(60)]
        llm = fake_llm(payload=[{"chartType": "bar", "xAxis": "v", "yAxis": "v"}])
        suggest_visualizations(Dataset(headers=["v"], rows=rows), llm=llm)
        _, user_message = llm.calls[0]
        assert "Data sample (50 of 60 rows)" in user_message

    def test_fallback_on_error(self, sales_dataset, fake_llm):
        llm = fake_llm(exc=LLMError("no key"))
        assert suggest_visualizations(sales_dataset, llm=llm) == fallback_suggestions(sales_dataset)

    def test_fallback_on_nothing_usable(self, sales_dataset, fake_llm):
        llm = fake_llm(payload={"suggestions": []})
        assert suggest_visualizations(sales_dataset, llm=llm) == fallback_suggestions(sales_dataset)


class TestAnalysis:
    """LLM analysis and the statistics fallback."""

    def test_llm_result(self, sales_dataset, fake_llm):
        llm = fake_llm(payload={
            "trends": ["sales grow"],
            "anomalies": "none found",
            "insights": ["North leads"],
            "summary": "Steady growth.",
        })
        result = analyze_dataset(sales_dataset, llm=llm)
        assert result.source == "llm"
        assert result.trends == ["sales grow"]
        assert result.anomalies == ["none found"]
        assert result.correlations == []
        assert result.summary == "Steady growth."

    def test_non_object_payload(self, sales_dataset, fake_llm):
        result = analyze_dataset(sales_dataset, llm=fake_llm(payload=["a", "b"]))
        assert result.summary == NON_JSON_SUMMARY
        assert len(result.insights) == 1

    def test_prompt_follows_options(self, sales_dataset, fake_llm):
        options = AnalysisOptions.model_validate({
            "focusOn": "trends",
            "timeField": "date",
            "valueFields": ["sales"],
            "categoryFields": ["region"],
        })
        prompt = build_system_prompt(options)
        assert "Focus primarily on identifying trends." in prompt
        assert "using the 'date' field" in prompt
        assert "these fields: sales." in prompt
        assert "segmentation: region." in prompt

        llm = fake_llm(payload={})
        analyze_dataset(sales_dataset, options, llm=llm)
        assert llm.calls[0][0] == prompt

    def test_sample_is_capped(self, fake_llm):
        rows = [{"v": i} for i in range(150)]
        llm = fake_llm(payload={})
        analyze_dataset(Dataset(headers=["v"], rows=rows), llm=llm)
        assert "with 100 rows (from total of 150 rows)" in llm.calls[0][1]

    def test_fallback_on_error(self, sales_dataset, fake_llm):
        result = analyze_dataset(sales_dataset, llm=fake_llm(exc=LLMError("down")))
        assert result.source == "fallback"
        assert result.summary.startswith("20 rows and 3 columns")
        assert any("sales rises" in t for t in result.trends)
        assert any("ranges from 100 to 195" in i for i in result.insights)

    def test_fallback_respects_focus(self, sales_dataset):
        result = fallback_analysis(sales_dataset, AnalysisOptions(focus_on="insights"))
        assert result.trends == []
        assert result.insights

    def test_fallback_flags_outlier(self):
        rows = [{"x": i + 1, "y": 2 * (i + 1) + (i % 2)} for i in range(30)]
        rows.append({"x": 31, "y": 5000})
        result = fallback_analysis(Dataset(headers=["x", "y"], rows=rows))
        assert any("y has 1 value(s)" in a for a in result.anomalies)


class TestJSONPayload:
    """Parsing of raw model output."""

    @pytest.mark.parametrize("text,expected", [
        ('{"a": 1}', {"a": 1}),
        ('```json\n{"a": 1}\n```', {"a": 1}),
        ('Here you go: {"a": [1, 2]} thanks', {"a": [1, 2]}),
        ('{"a": True, "b": None,}', {"a": True, "b": None}),
        ('```\n[1, 2,]\n```', [1, 2]),
        ('[{"chartType": "bar"}]', [{"chartType": "bar"}]),
    ])
    def test_load(self, text, expected):
        assert load_json_payload(text) == expected

    def test_garbage(self):
        with pytest.raises(ValueError):
            load_json_payload("no json here")


class _StubChatModel:
    """Minimal chat model: bind() is a no-op and invoke() returns a fixed message."""

    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.bound = {}

    def bind(self, **kwargs):
        self.bound = kwargs
        return self

    def invoke(self, messages):
        if self.exc is not None:
            raise self.exc
        return AIMessage(content=self.content)


class TestLLMClient:
    """chat_json over a stubbed chat model."""

    def test_json_mode_and_chunked_content(self):
        model = _StubChatModel(content=[{"type": "text", "text": '{"summary": '}, {"type": "text", "text": '"ok"}'}])
        client = LLMClient(chat_model=model, max_tokens=64)
        assert client.chat_json("system", "user") == {"summary": "ok"}
        assert model.bound == {"response_format": {"type": "json_object"}, "max_tokens": 64}

    def test_invoke_failure_is_llm_error(self):
        client = LLMClient(chat_model=_StubChatModel(exc=TimeoutError("slow")))
        with pytest.raises(LLMError, match="invoke_failed: slow"):
            client.chat_json("system", "user")

    def test_empty_content_is_llm_error(self):
        client = LLMClient(chat_model=_StubChatModel(content=""))
        with pytest.raises(LLMError, match="no_content"):
            client.chat_json("system", "user")
