"""LLM interpretation base.

Quick start:
    class MyInterpreter(BaseInterpreter[MyInput, MyOutput]):
        def get_system_prompt(self, input_data): ...
        def format_input(self, input_data): ...
        def parse_output(self, response_text): ...

    result = await MyInterpreter(api_key=key).interpret(my_input)
"""

from .base import BaseInterpreter

__all__ = [
    "BaseInterpreter",
]
