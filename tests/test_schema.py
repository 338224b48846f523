"""Test schema compilation and validation"""

import unittest
from typing import Literal, Optional

from pydantic import BaseModel, Field
from typing_extensions import TypedDict

from lmstruct.errors import ConfigurationError
from lmstruct.language_models.schema import (
    FUNCTION_DESCRIPTION,
    SchemaValidationError,
    build_function,
    compile_schema,
    schema_instructions,
    validate_payload,
)


class Task(BaseModel):
    task: str = Field(description="What to do")
    priority: int = 1


class Plan(BaseModel):
    """A plan"""

    plan: list[Task]
    status: Literal['draft', 'final'] = 'draft'
    owner: Optional[Task] = None


class Node(BaseModel):
    value: int
    children: list['Node'] = []


class Point(TypedDict):
    x: float
    y: float


def _keys(node, found=None):
    found = set() if found is None else found
    if isinstance(node, dict):
        for key, value in node.items():
            found.add(key)
            _keys(value, found)
    elif isinstance(node, list):
        for value in node:
            _keys(value, found)
    return found


class TestCompileSchema(unittest.TestCase):

    def test_inlined(self):
        schema = compile_schema(Plan)
        self.assertEqual(schema['type'], "object")
        task = schema['properties']['plan']['items']
        self.assertEqual(task['type'], "object")
        self.assertEqual(task['properties']['task']['description'], "What to do")
        self.assertEqual(schema['required'], ["plan"])

    def test_stripped(self):
        keys = _keys(compile_schema(Plan))
        for key in ("$ref", "$defs", "$schema", "title", "default"):
            self.assertNotIn(key, keys)
        self.assertIn("description", keys)

    def test_property_named_title(self):
        class Book(BaseModel):
            title: str
            default: bool

        schema = compile_schema(Book)
        self.assertEqual(set(schema['properties']), {"title", "default"})

    def test_typed_dict(self):
        schema = compile_schema(Point)
        self.assertEqual(set(schema['properties']), {"x", "y"})

    def test_not_object(self):
        for schema in (list[int], str, int):
            with self.assertRaises(ConfigurationError):
                compile_schema(schema)

    def test_recursive(self):
        with self.assertRaises(ConfigurationError):
            compile_schema(Node)


class TestBuildFunction(unittest.TestCase):

    def test_defaults(self):
        function = build_function(Plan)
        self.assertEqual(function.name, "print")
        self.assertEqual(function.description, FUNCTION_DESCRIPTION)
        self.assertEqual(function.parameters, compile_schema(Plan))

    def test_instructions(self):
        text = schema_instructions(build_function(Task))
        self.assertTrue(text.startswith("Respond ONLY with a JSON object"))
        self.assertIn('"task"', text)


class TestValidatePayload(unittest.TestCase):

    def test_valid(self):
        plan = Plan(plan=[Task(task="pack", priority=2)], status='final')
        data = validate_payload(Plan, plan.model_dump(mode='json'))
        self.assertEqual(data, plan)

    def test_typed_dict(self):
        self.assertEqual(
            validate_payload(Point, {'x': 1, 'y': 2.5}), {'x': 1.0, 'y': 2.5}
        )

    def test_issues(self):
        with self.assertRaises(SchemaValidationError) as ctx:
            validate_payload(
                Plan, {'plan': [{'task': "pack"}, {}], 'status': 'done'}
            )
        paths = {i.dotted_path for i in ctx.exception.issues}
        self.assertEqual(paths, {"plan.1.task", "status"})

    def test_not_an_object(self):
        with self.assertRaises(SchemaValidationError) as ctx:
            validate_payload(Plan, [1, 2])
        self.assertEqual(ctx.exception.issues[0].path, ())


if __name__ == "__main__":
    unittest.main()
