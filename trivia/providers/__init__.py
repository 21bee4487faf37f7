"""Trivia question banks."""

from .base import QuestionBank
from .kv import KVQuestionBank
from .opentdb import OpenTDBError, OpenTDBProvider

__all__ = ["QuestionBank", "KVQuestionBank", "OpenTDBError", "OpenTDBProvider"]
