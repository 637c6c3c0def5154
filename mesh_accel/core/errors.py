"""
Исключения для ошибок использования API

Вырожденная геометрия ошибкой не считается: построители обрабатывают её
детерминированными откатами (медианный разрез, лист со всем набором).
"""


class MeshAccelError(ValueError):
    """Базовое исключение пакета"""


class GeometryError(MeshAccelError):
    """Источник геометрии отсутствует или имеет неверный формат"""


class RefitError(MeshAccelError):
    """Refit невозможен: дерево не поддерживает refit или геометрия не совпадает"""
