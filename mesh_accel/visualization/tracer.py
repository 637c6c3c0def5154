"""
Трассировщик для сбора данных визуализации процесса построения
"""
import json
import csv
from pathlib import Path
from typing import Optional, List, Any
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass
class TraceRecorder:
    """
    Сборщик артефактов для визуализации построения дерева

    Записывает:
    1. Решения о разрезах (метод, ось, стоимость, размеры сторон)
    2. Финальные листья (боксы и число треугольников)
    3. Произвольные пользовательские данные
    """
    max_decisions: int = 100_000
    data: dict = field(default_factory=dict)
    decisions: List[dict] = field(default_factory=list)

    _stats_file: Optional[Any] = None
    _stats_writer: Optional[Any] = None
    _stats_header: Optional[List[str]] = None

    def __post_init__(self):
        """Инициализация структуры данных"""
        self.data = {
            'metadata': {
                'version': '1.0',
                'description': 'Acceleration structure construction trace'
            }
        }

    def record_split_decision(self, data: dict) -> None:
        """Запись одного решения о разрезе (в память и, если открыт, в CSV)"""
        if len(self.decisions) < self.max_decisions:
            self.decisions.append(dict(data))

        if not self._stats_writer:
            return

        try:
            if self._stats_header is None:
                self._stats_header = list(data.keys())
                self._stats_writer.writerow(self._stats_header)
            self._stats_writer.writerow([data.get(key) for key in self._stats_header])
        except (csv.Error, OSError) as e:
            logger.error(f"Error recording split decision stats: {e}")

    def record_final_boxes(self, leaves_iter) -> None:
        """
        Запись финальных блоков (листьев дерева)

        Args:
            leaves_iter: Итератор по листовым узлам
        """
        final_boxes = []

        for leaf in leaves_iter:
            box = leaf.aabb.to_dict()
            box['count'] = int(leaf.triangle_count())
            box['level'] = int(leaf.level)
            final_boxes.append(box)

        self.data['final_output'] = {
            'final_boxes': final_boxes,
            'total_leaves': len(final_boxes),
            'total_references': sum(b['count'] for b in final_boxes)
        }

        logger.debug(f"Recorded {len(final_boxes)} final leaves")

    def add_custom_data(self, key: str, value: Any) -> None:
        """
        Добавление пользовательских данных в трассировку

        Args:
            key: Ключ для данных
            value: Значение (должно быть JSON-сериализуемым)
        """
        if 'custom' not in self.data:
            self.data['custom'] = {}

        self.data['custom'][key] = value
        logger.debug(f"Added custom trace data: {key}")

    def start_stats_recording(self, path: Path) -> None:
        """Открывает CSV-файл для записи статистики разбиений."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._stats_file = open(path, 'w', newline='', encoding='utf-8')
            self._stats_writer = csv.writer(self._stats_file)
            logger.info(f"Split statistics recording enabled, saving to {path}")
        except OSError as e:
            logger.error(f"Failed to open stats file {path}: {e}")
            self._stats_file = None
            self._stats_writer = None

    def close(self) -> None:
        """Закрывает CSV файл статистики."""
        if self._stats_file:
            self._stats_file.close()
            self._stats_file = None
            self._stats_writer = None
            logger.debug("Stats CSV file closed.")

    def dump(self, path: Path) -> None:
        """
        Сохранение трассировки в JSON файл

        Args:
            path: Путь к выходному файлу
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = dict(self.data)
        payload['split_decisions'] = self.decisions

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

        logger.info(f"Trace saved to {path}")

    def get_summary(self) -> dict:
        """Краткая сводка по трассировке"""
        methods = {}
        for decision in self.decisions:
            method = decision.get('decision_method')
            methods[method] = methods.get(method, 0) + 1

        summary = {
            'n_decisions': len(self.decisions),
            'methods': methods
        }

        if 'final_output' in self.data:
            final = self.data['final_output']
            summary['n_final_boxes'] = final.get('total_leaves', 0)
            summary['n_total_references'] = final.get('total_references', 0)

        return summary
