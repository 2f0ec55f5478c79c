"""
Парсер GIF файлов без использования готовых библиотек.
Читает поток блоков и собирает из него полноразмерные RGBA кадры
с учётом прозрачности и способа утилизации (disposal method) каждого кадра.
"""

import io
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from fractions import Fraction
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from gif_blocks import (
    ApplicationBlock,
    Block,
    BlockKind,
    DisposalMethod,
    GraphicControlBlock,
    ImageDescriptorBlock,
    PlainTextBlock,
    read_next_block,
)
from gif_color_table import RGBA, ColorTable, color_table_size, default_color_table, read_color_table
from gif_errors import GIFError, ImageTooLarge, InvalidFormat, NoFramesDecoded
from gif_stream import GIFStream

logger = logging.getLogger(__name__)

HEADER_GIF = 'GIF'
SUPPORTED_VERSIONS = ('87a', '89a')
DEFAULT_DELAY_MS = 100
TRANSPARENT: RGBA = (0, 0, 0, 0)

MASK_GLOBAL_COLOR_TABLE_FOLLOW = 0x80
MASK_COLOR_RESOLUTION = 0x70
SHIFT_COLOR_RESOLUTION = 4
MASK_GLOBAL_COLOR_TABLE_ORDERED = 0x08
MASK_GLOBAL_COLOR_TABLE_SIZE = 0x07

Canvas = List[List[RGBA]]
Source = Union[str, os.PathLike, bytes, bytearray, memoryview, BinaryIO]


@dataclass(frozen=True)
class LogicalScreenDescriptor:
    width: int
    height: int
    color_resolution: int
    global_color_table_present: bool
    global_color_table_size: int
    colors_ordered: bool
    background_color_index: int
    pixel_aspect_ratio: Fraction


@dataclass(frozen=True)
class Frame:
    """Готовый кадр размером с логический экран"""
    index: int
    width: int
    height: int
    pixels: Tuple[Tuple[RGBA, ...], ...]
    duration: int  # миллисекунды

    def pixel(self, x: int, y: int) -> RGBA:
        return self.pixels[y][x]

    def to_bytes(self) -> bytes:
        """Пиксели кадра подряд, по 4 байта RGBA"""
        return bytes(channel for row in self.pixels for pixel in row for channel in pixel)


class GIFParser:
    """Парсер для GIF файлов"""

    def __init__(self, source: Source, default_delay_ms: int = DEFAULT_DELAY_MS,
                 tolerate_out_of_sequence: bool = True, max_pixels: Optional[int] = None):
        self.source = source
        self.default_delay_ms = default_delay_ms
        self.tolerate_out_of_sequence = tolerate_out_of_sequence
        self.max_pixels = max_pixels
        self.version = ''
        self.screen: Optional[LogicalScreenDescriptor] = None
        self.global_color_table: Optional[ColorTable] = None
        self.frames: List[Frame] = []
        self.comments: List[str] = []
        self.applications: List[ApplicationBlock] = []
        self.plain_texts: List[PlainTextBlock] = []
        self.blocks_read = 0

    @property
    def width(self) -> int:
        return self.screen.width if self.screen else 0

    @property
    def height(self) -> int:
        return self.screen.height if self.screen else 0

    @property
    def total_duration(self) -> int:
        return sum(frame.duration for frame in self.frames)

    @property
    def loop_count(self) -> Optional[int]:
        for application in self.applications:
            if application.loop_count is not None:
                return application.loop_count
        return None

    @contextmanager
    def _open(self) -> Iterator[BinaryIO]:
        source = self.source
        if isinstance(source, (bytes, bytearray, memoryview)):
            yield io.BytesIO(bytes(source))
        elif isinstance(source, (str, os.PathLike)):
            with open(source, 'rb') as f:
                yield f
        else:
            yield source

    def parse_header(self, stream: GIFStream) -> str:
        """Проверяет сигнатуру и версию"""
        offset = stream.position
        signature = stream.read_string(3)
        if signature != HEADER_GIF:
            raise InvalidFormat(f"Неверная сигнатура GIF: {signature!r}", offset=offset)

        version = stream.read_string(3)
        if version not in SUPPORTED_VERSIONS:
            raise InvalidFormat(f"Неподдерживаемая версия GIF: {version!r}", offset=offset + 3)

        self.version = version
        return version

    def parse_logical_screen(self, stream: GIFStream) -> LogicalScreenDescriptor:
        """Парсит дескриптор логического экрана и глобальную таблицу цветов"""
        offset = stream.position
        width = stream.read_uint16_le()
        height = stream.read_uint16_le()
        packed = stream.read_byte()
        background_color_index = stream.read_byte()
        pixel_aspect_ratio = stream.read_byte()

        if self.max_pixels is not None and width * height > self.max_pixels:
            raise ImageTooLarge(f"Логический экран {width}x{height} больше {self.max_pixels} пикселей", offset=offset)

        screen = LogicalScreenDescriptor(
            width=width,
            height=height,
            color_resolution=((packed & MASK_COLOR_RESOLUTION) >> SHIFT_COLOR_RESOLUTION) + 1,
            global_color_table_present=bool(packed & MASK_GLOBAL_COLOR_TABLE_FOLLOW),
            global_color_table_size=color_table_size(packed & MASK_GLOBAL_COLOR_TABLE_SIZE),
            colors_ordered=bool(packed & MASK_GLOBAL_COLOR_TABLE_ORDERED),
            background_color_index=background_color_index,
            pixel_aspect_ratio=Fraction(pixel_aspect_ratio + 15, 64)
        )

        if screen.global_color_table_present:
            self.global_color_table = read_color_table(
                stream, screen.global_color_table_size, screen.color_resolution, screen.colors_ordered
            )
        else:
            self.global_color_table = default_color_table(screen.color_resolution, screen.global_color_table_size)

        self.screen = screen
        return screen

    def read_screen(self) -> LogicalScreenDescriptor:
        """Читает только заголовок и логический экран"""
        with self._open() as f:
            stream = GIFStream(f)
            self.parse_header(stream)
            return self.parse_logical_screen(stream)

    def _reset(self):
        self.frames = []
        self.comments = []
        self.applications = []
        self.plain_texts = []
        self.blocks_read = 0

    def _read_block(self, stream: GIFStream, block_index: int) -> Block:
        try:
            return read_next_block(stream, self.screen.color_resolution, self.tolerate_out_of_sequence, self.max_pixels)
        except GIFError as error:
            if error.block_index is None:
                error.block_index = block_index
            raise

    def iter_frames(self) -> Iterator[Frame]:
        """Читает поток и выдаёт кадры по мере их готовности"""
        self._reset()

        with self._open() as f:
            stream = GIFStream(f)
            self.parse_header(stream)
            screen = self.parse_logical_screen(stream)

            canvas = self.new_canvas(screen.width, screen.height)
            pending_control: Optional[GraphicControlBlock] = None

            while True:
                block = self._read_block(stream, self.blocks_read)
                self.blocks_read += 1

                if block.kind is BlockKind.END:
                    break
                elif block.kind is BlockKind.GRAPHIC_CONTROL:
                    pending_control = block
                elif block.kind is BlockKind.IMAGE_DESCRIPTOR:
                    frame, canvas = self.compose_frame(block, pending_control, canvas)
                    pending_control = None
                    self.frames.append(frame)
                    yield frame
                elif block.kind is BlockKind.COMMENT:
                    self.comments.append(block.text)
                elif block.kind is BlockKind.APPLICATION:
                    self.applications.append(block)
                elif block.kind is BlockKind.PLAIN_TEXT:
                    self.plain_texts.append(block)

        logger.debug("Разобрано блоков: %d, кадров: %d", self.blocks_read, len(self.frames))

    def parse(self) -> List[Frame]:
        """Парсит весь GIF файл и возвращает список кадров"""
        frames = list(self.iter_frames())
        if not frames:
            raise NoFramesDecoded("В GIF нет ни одного изображения", block_index=self.blocks_read)
        return frames

    def get_frame(self, frame_index: int) -> Optional[Frame]:
        """Получает указанный кадр (None для неверного индекса)"""
        if not self.frames:
            self.parse()

        if frame_index < 0 or frame_index >= len(self.frames):
            return None

        return self.frames[frame_index]

    @staticmethod
    def new_canvas(width: int, height: int) -> Canvas:
        """Создаёт полностью прозрачный холст"""
        return [[TRANSPARENT] * width for _ in range(height)]

    @staticmethod
    def copy_canvas(canvas: Canvas) -> Canvas:
        """Создает копию холста"""
        return [row[:] for row in canvas]

    def compose_frame(self, block: ImageDescriptorBlock, control: Optional[GraphicControlBlock],
                      canvas: Canvas) -> Tuple[Frame, Canvas]:
        """
        Накладывает изображение на копию холста и применяет утилизацию.
        Возвращает готовый кадр и холст для следующего кадра.
        """
        color_table = block.local_color_table if block.local_color_table is not None else self.global_color_table

        if control is not None:
            disposal_method = control.disposal_method
            transparent_index = control.transparent_index
            duration = control.duration(self.default_delay_ms)
        else:
            disposal_method = DisposalMethod.UNSPECIFIED
            transparent_index = None
            duration = self.default_delay_ms

        frame_buffer = self.copy_canvas(canvas)
        self.draw_image(frame_buffer, block, color_table, transparent_index)

        frame = Frame(
            index=len(self.frames),
            width=self.screen.width,
            height=self.screen.height,
            pixels=tuple(tuple(row) for row in frame_buffer),
            duration=duration
        )

        if disposal_method in (DisposalMethod.UNSPECIFIED, DisposalMethod.DO_NOT_DISPOSE):
            canvas = frame_buffer
        elif disposal_method is DisposalMethod.RESTORE_BACKGROUND:
            background = self.background_color(color_table, transparent_index)
            logger.debug("Кадр %d: восстановление фона %s", frame.index, background)
            self.fill_rectangle(canvas, block.x, block.y, block.width, block.height, background)
        else:
            # RESTORE_PREVIOUS и зарезервированные значения
            logger.debug("Кадр %d: холст остаётся прежним", frame.index)

        return frame, canvas

    def background_color(self, color_table: ColorTable, transparent_index: Optional[int]) -> RGBA:
        """Цвет фона: прозрачный, если индекс фона совпадает с прозрачным"""
        background_index = self.screen.background_color_index
        if transparent_index is not None and background_index == transparent_index:
            return TRANSPARENT
        return color_table.color(background_index)

    def draw_image(self, canvas: Canvas, block: ImageDescriptorBlock, color_table: ColorTable,
                   transparent_index: Optional[int]):
        """Накладывает индексы изображения на холст, пропуская прозрачные пиксели"""
        palette = [color_table.color(index) for index in range(256)]
        indexes = block.color_indexes
        canvas_height = len(canvas)
        canvas_width = len(canvas[0]) if canvas else 0

        for y in range(block.height):
            canvas_y = block.y + y
            if canvas_y >= canvas_height:
                break

            row = canvas[canvas_y]
            base = y * block.width

            for x in range(block.width):
                canvas_x = block.x + x
                if canvas_x >= canvas_width:
                    break

                index = indexes[base + x]
                if index == transparent_index:
                    continue
                row[canvas_x] = palette[index]

    @staticmethod
    def fill_rectangle(canvas: Canvas, left: int, top: int, width: int, height: int, color: RGBA):
        """Заливает прямоугольник холста (с обрезкой по границам)"""
        canvas_height = len(canvas)
        canvas_width = len(canvas[0]) if canvas else 0
        right = min(left + width, canvas_width)

        for y in range(top, min(top + height, canvas_height)):
            row = canvas[y]
            for x in range(left, right):
                row[x] = color
