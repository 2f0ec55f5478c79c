"""
Готовая анимация: кадры, длительности, отпечаток содержимого и выбор кадра по времени.
"""

import hashlib
import struct
from typing import Iterator, List, Optional, Sequence, Tuple

from gif_errors import GIFError, NoFramesDecoded
from gif_parser import DEFAULT_DELAY_MS, Frame, GIFParser, Source


def fingerprint(frames: Sequence[Frame]) -> str:
    """
    MD5 от содержимого кадров: число кадров, затем для каждого кадра
    ширина, высота и пиксели RGBA. Зависит от порядка кадров.
    """
    md5 = hashlib.md5()
    md5.update(struct.pack('>I', len(frames)))

    for frame in frames:
        md5.update(struct.pack('>II', frame.width, frame.height))
        md5.update(frame.to_bytes())

    return md5.hexdigest()


def frame_index_at(durations: Sequence[int], elapsed_ms: int) -> int:
    """
    Индекс кадра, который показывается через elapsed_ms после начала (анимация зациклена).
    На границе кадров остаётся текущий кадр.
    """
    if not durations:
        raise ValueError("Нет кадров")

    total = sum(durations)
    if total <= 0:
        return 0

    relative = elapsed_ms % total
    actual = 0
    for index, duration in enumerate(durations[:-1]):
        actual += duration
        if actual >= relative:
            return index

    return len(durations) - 1


class AnimationCursor:
    """
    Курсор проигрывания. За один вызов frame_at переходит не больше чем
    на один кадр вперёд, поэтому при редких вызовах кадры не пропускаются.
    Текущее время передаёт вызывающий код.
    """

    def __init__(self, durations: Sequence[int]):
        if not durations:
            raise ValueError("Нет кадров")
        self.durations = list(durations)
        self.start_time = 0
        self.previous_index = 0

    def start(self, now_ms: int):
        self.start_time = now_ms
        self.previous_index = 0

    def frame_at(self, now_ms: int) -> int:
        index = frame_index_at(self.durations, now_ms - self.start_time)

        if index != self.previous_index:
            index = (self.previous_index + 1) % len(self.durations)

        self.previous_index = index
        return index


class GIFAnimation:
    """Последовательность готовых кадров с длительностями"""

    def __init__(self, width: int, height: int, frames: Sequence[Frame],
                 loop_count: Optional[int] = None, comments: Sequence[str] = ()):
        if not frames:
            raise NoFramesDecoded("Не удалось получить ни одного кадра")
        self.width = width
        self.height = height
        self.frames: List[Frame] = list(frames)
        self.loop_count = loop_count
        self.comments = list(comments)

    @classmethod
    def from_parser(cls, parser: GIFParser) -> 'GIFAnimation':
        frames = parser.frames or parser.parse()
        return cls(parser.width, parser.height, frames, parser.loop_count, parser.comments)

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self.frames)

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def durations(self) -> List[int]:
        return [frame.duration for frame in self.frames]

    @property
    def total_duration(self) -> int:
        return sum(self.durations)

    def image(self, index: int) -> Frame:
        return self.frames[index]

    def delay(self, index: int) -> int:
        return self.frames[index].duration

    def fingerprint(self) -> str:
        return fingerprint(self.frames)

    def frame_index_at(self, elapsed_ms: int) -> int:
        return frame_index_at(self.durations, elapsed_ms)

    def cursor(self) -> AnimationCursor:
        return AnimationCursor(self.durations)


def decode_gif(source: Source, default_delay_ms: int = DEFAULT_DELAY_MS,
               tolerate_out_of_sequence: bool = True) -> GIFAnimation:
    """Декодирует GIF целиком"""
    parser = GIFParser(source, default_delay_ms, tolerate_out_of_sequence)
    return GIFAnimation.from_parser(parser)


def compute_gif_size(source: Source) -> Optional[Tuple[int, int]]:
    """Размер логического экрана или None, если это не GIF"""
    try:
        screen = GIFParser(source).read_screen()
    except (GIFError, OSError):
        return None
    return screen.width, screen.height


def is_gif(source: Source) -> bool:
    return compute_gif_size(source) is not None
