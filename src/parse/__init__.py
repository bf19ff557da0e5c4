"""Lexical parsing of Ruby spec files."""

from parse.factory_calls import extract_call_sites
from parse.ruby_lexer import mask_code

__all__ = ["extract_call_sites", "mask_code"]
