import unittest

from docguard.domain.generation import FieldSpec, GenerationRequest, PromptTemplate, Shape, TemplateError
from docguard.domain.generation.operations import EXPLAIN_CONFIDENCE_SCORE


class PromptTemplateTests(unittest.TestCase):
    def test_scalar_placeholders_are_substituted(self) -> None:
        template = PromptTemplate.compile("Score: {{score}} / Areas: {{{areas}}}")

        rendered = template.render({"score": 62, "areas": "Signature <block>"})

        self.assertEqual(rendered, "Score: 62 / Areas: Signature <block>")

    def test_fields_are_listed_in_order(self) -> None:
        template = PromptTemplate.compile("{{b}} {{a}} {{#each items}}{{this}}{{a}}{{/each}} {{b}}")

        self.assertEqual(template.fields, ("b", "a", "items"))
        self.assertEqual(template.iterated_fields, ("items",))

    def test_each_block_repeats_once_per_element_in_order(self) -> None:
        template = PromptTemplate.compile("Items: {{#each items}}[{{this}}]{{/each}}.")

        self.assertEqual(template.render({"items": ["a", "b", "c"]}), "Items: [a][b][c].")
        self.assertEqual(template.render({"items": []}), "Items: .")

    def test_standalone_block_lines_leave_no_blank_lines(self) -> None:
        source = "Factors:\n  {{#each factors}}\n- {{this}}\n  {{/each}}\nDone."
        template = PromptTemplate.compile(source)

        rendered = template.render({"factors": ["font analysis", "image noise"]})

        self.assertEqual(rendered, "Factors:\n- font analysis\n- image noise\nDone.")

    def test_explain_score_prompt_lists_each_factor(self) -> None:
        rendered = EXPLAIN_CONFIDENCE_SCORE.render(
            {"confidenceScore": 62, "factors": ["font analysis", "image noise"]}
        )

        self.assertIn("(62)", rendered)
        self.assertIn("- font analysis\n- image noise\n", rendered)
        self.assertLess(rendered.index("font analysis"), rendered.index("image noise"))
        bullet_lines = [line for line in rendered.splitlines() if line.startswith("- ")]
        self.assertEqual(bullet_lines, ["- font analysis", "- image noise"])

    def test_render_is_pure(self) -> None:
        data = {"confidenceScore": 70, "factors": ["metadata mismatch"]}

        first = EXPLAIN_CONFIDENCE_SCORE.render(data)
        second = EXPLAIN_CONFIDENCE_SCORE.render(data)

        self.assertEqual(first, second)
        self.assertEqual(data, {"confidenceScore": 70, "factors": ["metadata mismatch"]})

    def test_sequence_used_as_scalar_is_comma_joined(self) -> None:
        template = PromptTemplate.compile("{{factors}}")
        self.assertEqual(template.render({"factors": ["a", "b"]}), "a, b")

    def test_none_renders_empty(self) -> None:
        template = PromptTemplate.compile("[{{note}}]")
        self.assertEqual(template.render({"note": None}), "[]")

    def test_missing_field_at_render_time_fails(self) -> None:
        template = PromptTemplate.compile("{{score}}")

        with self.assertRaises(TemplateError) as ctx:
            template.render({})
        self.assertIn("missing_field:score", ctx.exception.reason)

    def test_malformed_templates_are_rejected(self) -> None:
        cases = {
            "{{#each items}}x": "unclosed_each",
            "x{{/each}}": "unmatched_each_close",
            "{{this}}": "loop_variable_outside_each",
            "{{#each a}}{{#each b}}{{/each}}{{/each}}": "nested_each_not_supported",
            "{{ bad-name }}": "malformed_tag",
            "{{#each}}{{/each}}": "malformed_tag",
        }
        for source, reason in cases.items():
            with self.subTest(source=source):
                with self.assertRaises(TemplateError) as ctx:
                    PromptTemplate.compile(source)
                self.assertIn(reason, ctx.exception.reason)

    def test_check_rejects_undeclared_fields(self) -> None:
        shape = Shape.of({"score": FieldSpec("number")})
        template = PromptTemplate.compile("{{score}} {{areas}}")

        with self.assertRaises(TemplateError) as ctx:
            template.check(shape)
        self.assertIn("undeclared_field:areas", ctx.exception.reason)

    def test_check_rejects_each_over_scalar_field(self) -> None:
        shape = Shape.of({"score": FieldSpec("number")})
        template = PromptTemplate.compile("{{#each score}}{{this}}{{/each}}")

        with self.assertRaises(TemplateError) as ctx:
            template.check(shape)
        self.assertIn("each_over_scalar:score", ctx.exception.reason)

    def test_request_definition_fails_fast_on_bad_template(self) -> None:
        with self.assertRaises(TemplateError) as ctx:
            GenerationRequest(
                name="broken",
                input_shape=Shape.of({"score": FieldSpec("number")}),
                output_shape=Shape.of({"text": FieldSpec("string")}),
                template="{{score}} {{missing}}",
            )

        self.assertEqual(ctx.exception.flow, "broken")
        self.assertEqual(ctx.exception.code, "template_error")


if __name__ == "__main__":
    unittest.main()
