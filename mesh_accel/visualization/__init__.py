"""
Модуль визуализации построения деревьев
"""
from .tracer import TraceRecorder

__all__ = ['TraceRecorder']
