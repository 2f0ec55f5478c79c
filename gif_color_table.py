"""
Таблицы цветов GIF: чтение из потока и таблица по умолчанию.
"""

from typing import List, Sequence, Tuple

from gif_stream import GIFStream

RGB = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]

MIN_TABLE_SIZE = 2
MAX_TABLE_SIZE = 256


def color_table_size(exponent: int) -> int:
    """Размер таблицы по трём битам флагов"""
    return 2 ** ((exponent & 0x07) + 1)


class ColorTable:
    """Палитра из 2..256 непрозрачных цветов"""

    def __init__(self, colors: Sequence[RGB], resolution: int = 8, ordered: bool = False):
        if len(colors) < MIN_TABLE_SIZE or len(colors) > MAX_TABLE_SIZE or len(colors) & (len(colors) - 1):
            raise ValueError(f"Размер таблицы цветов должен быть степенью двойки от 2 до 256, а не {len(colors)}")
        self.colors: List[RGB] = [tuple(color) for color in colors]
        self.resolution = resolution
        self.ordered = ordered

    @property
    def size(self) -> int:
        return len(self.colors)

    def __len__(self) -> int:
        return len(self.colors)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ColorTable):
            return NotImplemented
        return self.colors == other.colors

    def __repr__(self) -> str:
        return f"ColorTable(size={self.size}, resolution={self.resolution}, ordered={self.ordered})"

    def rgb(self, index: int) -> RGB:
        return self.colors[index % len(self.colors)]

    def color(self, index: int) -> RGBA:
        """Цвет по индексу (индекс берётся по модулю размера таблицы)"""
        r, g, b = self.colors[index % len(self.colors)]
        return (r, g, b, 255)


def read_color_table(stream: GIFStream, size: int, resolution: int = 8, ordered: bool = False) -> ColorTable:
    """Читает таблицу цветов из 3*size байт"""
    data = stream.read_bytes(size * 3)
    colors = [(data[i], data[i + 1], data[i + 2]) for i in range(0, len(data), 3)]
    return ColorTable(colors, resolution, ordered)


def _normalize_size(size: int) -> int:
    normalized = MIN_TABLE_SIZE
    while normalized < size and normalized < MAX_TABLE_SIZE:
        normalized <<= 1
    return normalized


def default_color_table(resolution: int, size: int) -> ColorTable:
    """
    Таблица по умолчанию для потоков без глобальной таблицы.
    0 - чёрный, 1 - белый, дальше куб цветов: синий, затем зелёный, затем красный
    с шагом 256 / 2^resolution.
    """
    resolution = min(8, max(1, resolution))
    size = _normalize_size(size)
    step = 256 // (1 << resolution)

    colors: List[RGB] = [(0, 0, 0), (255, 255, 255)]
    red = 0
    green = 0
    blue = step

    for _ in range(2, size):
        colors.append((red, green, blue))
        blue += step

        if blue > 255:
            blue = 0
            green += step

            if green > 255:
                green = 0
                red = (red + step) & 0xFF

    return ColorTable(colors, resolution, False)
