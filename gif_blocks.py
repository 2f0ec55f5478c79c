"""
Блоки GIF потока.

Набор блоков закрыт: описание изображения, управление графикой, комментарий,
простой текст, приложение, игнорируемый блок и конец потока.
read_next_block читает байт типа (и подтип для расширений) и выбирает
нужную функцию чтения.
"""

import enum
import logging
import struct
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple, Union

from gif_color_table import ColorTable, color_table_size, read_color_table
from gif_errors import ImageTooLarge, MalformedBlock, UnknownBlockType, UnknownExtensionSubType
from gif_lzw import decompress
from gif_stream import GIFStream, iter_sub_blocks, read_sub_block_data

logger = logging.getLogger(__name__)

BLOCK_IMAGE_DESCRIPTOR = 0x2C
BLOCK_EXTENSION = 0x21
BLOCK_END_GIF = 0x3B
BLOCK_IGNORE = 0x00

BLOCK_EXTENSION_GRAPHIC_CONTROL = 0xF9
BLOCK_EXTENSION_COMMENT = 0xFE
BLOCK_EXTENSION_PLAIN_TEXT = 0x01
BLOCK_EXTENSION_APPLICATION = 0xFF

GRAPHIC_CONTROL_SIZE = 4
APPLICATION_SIZE = 11
PLAIN_TEXT_SIZE = 12

MASK_COLOR_TABLE_FOLLOW = 0x80
MASK_IMAGE_INTERLACED = 0x40
MASK_COLOR_TABLE_ORDERED = 0x20
MASK_COLOR_TABLE_SIZE = 0x07
MASK_DISPOSAL_METHOD = 0x1C
SHIFT_DISPOSAL_METHOD = 2
MASK_USER_INPUT = 0x02
MASK_TRANSPARENCY_GIVEN = 0x01

# Приложения, хранящие число повторов анимации в подблоке 0x01
LOOPING_APPLICATIONS = (('NETSCAPE', b'2.0'), ('ANIMEXTS', b'1.0'))


class BlockKind(enum.Enum):
    IMAGE_DESCRIPTOR = 'image_descriptor'
    GRAPHIC_CONTROL = 'graphic_control'
    COMMENT = 'comment'
    PLAIN_TEXT = 'plain_text'
    APPLICATION = 'application'
    IGNORE = 'ignore'
    END = 'end'


class DisposalMethod(enum.IntEnum):
    """Что сделать с холстом после показа кадра"""
    UNSPECIFIED = 0
    DO_NOT_DISPOSE = 1
    RESTORE_BACKGROUND = 2
    RESTORE_PREVIOUS = 3


@dataclass(frozen=True)
class ImageDescriptorBlock:
    x: int
    y: int
    width: int
    height: int
    interlaced: bool
    local_color_table: Optional[ColorTable]
    min_code_size: int
    color_indexes: bytes
    end_code_seen: bool = True

    kind: ClassVar[BlockKind] = BlockKind.IMAGE_DESCRIPTOR


@dataclass(frozen=True)
class GraphicControlBlock:
    # Зарезервированные значения 4..7 хранятся как есть (int)
    disposal_method: Union[DisposalMethod, int]
    user_input: bool
    transparent_index: Optional[int]
    delay: int  # в сотых долях секунды

    kind: ClassVar[BlockKind] = BlockKind.GRAPHIC_CONTROL

    def duration(self, default_ms: int) -> int:
        """Длительность кадра в миллисекундах (нулевая задержка заменяется значением по умолчанию)"""
        if self.delay == 0:
            return default_ms
        return self.delay * 10


@dataclass(frozen=True)
class CommentBlock:
    text: str

    kind: ClassVar[BlockKind] = BlockKind.COMMENT


@dataclass(frozen=True)
class PlainTextBlock:
    grid_x: int
    grid_y: int
    grid_width: int
    grid_height: int
    cell_width: int
    cell_height: int
    foreground_index: int
    background_index: int
    text: str

    kind: ClassVar[BlockKind] = BlockKind.PLAIN_TEXT


@dataclass(frozen=True)
class ApplicationBlock:
    identifier: str
    authentication_code: bytes
    sub_blocks: Tuple[bytes, ...]

    kind: ClassVar[BlockKind] = BlockKind.APPLICATION

    @property
    def data(self) -> bytes:
        return b''.join(self.sub_blocks)

    @property
    def loop_count(self) -> Optional[int]:
        """Число повторов из расширения NETSCAPE2.0 / ANIMEXTS1.0 (0 - бесконечно)"""
        if (self.identifier, self.authentication_code) not in LOOPING_APPLICATIONS:
            return None
        for sub_block in self.sub_blocks:
            if len(sub_block) == 3 and sub_block[0] == 0x01:
                return struct.unpack('<xH', sub_block)[0]
        return None


@dataclass(frozen=True)
class IgnoreBlock:
    kind: ClassVar[BlockKind] = BlockKind.IGNORE


@dataclass(frozen=True)
class EndBlock:
    kind: ClassVar[BlockKind] = BlockKind.END


IGNORE_BLOCK = IgnoreBlock()
END_BLOCK = EndBlock()

Block = Union[ImageDescriptorBlock, GraphicControlBlock, CommentBlock, PlainTextBlock,
              ApplicationBlock, IgnoreBlock, EndBlock]


def read_next_block(stream: GIFStream, color_resolution: int, tolerate_out_of_sequence: bool = True,
                    max_pixels: Optional[int] = None) -> Block:
    """Читает следующий блок потока"""
    offset = stream.position
    block_type = stream.read_byte()

    if block_type == BLOCK_IMAGE_DESCRIPTOR:
        return read_image_descriptor(stream, color_resolution, tolerate_out_of_sequence, max_pixels)
    elif block_type == BLOCK_EXTENSION:
        return read_extension(stream)
    elif block_type == BLOCK_END_GIF:
        return END_BLOCK
    elif block_type == BLOCK_IGNORE:
        # Встречается в некоторых некорректных файлах
        logger.debug("Пустой байт типа блока на смещении %d", offset)
        return IGNORE_BLOCK

    raise UnknownBlockType(f"Неизвестный тип блока: 0x{block_type:02X}", offset=offset)


def read_extension(stream: GIFStream) -> Block:
    """Читает блок расширения (байт 0x21 уже прочитан)"""
    offset = stream.position
    sub_type = stream.read_byte()

    if sub_type == BLOCK_EXTENSION_GRAPHIC_CONTROL:
        return read_graphic_control(stream)
    elif sub_type == BLOCK_EXTENSION_COMMENT:
        return read_comment(stream)
    elif sub_type == BLOCK_EXTENSION_PLAIN_TEXT:
        return read_plain_text(stream)
    elif sub_type == BLOCK_EXTENSION_APPLICATION:
        return read_application(stream)

    raise UnknownExtensionSubType(f"Неизвестный подтип расширения: 0x{sub_type:02X}", offset=offset)


def _expect_block_size(stream: GIFStream, expected: int, name: str) -> None:
    offset = stream.position
    size = stream.read_byte()
    if size != expected:
        raise MalformedBlock(f"Размер блока {name} должен быть {expected}, а не {size}", offset=offset)


def read_graphic_control(stream: GIFStream) -> GraphicControlBlock:
    """Читает Graphic Control Extension"""
    _expect_block_size(stream, GRAPHIC_CONTROL_SIZE, 'Graphic Control')

    packed = stream.read_byte()
    raw_disposal = (packed & MASK_DISPOSAL_METHOD) >> SHIFT_DISPOSAL_METHOD
    try:
        disposal_method = DisposalMethod(raw_disposal)
    except ValueError:
        logger.warning("Зарезервированный способ утилизации кадра %d, холст после кадра не меняется", raw_disposal)
        disposal_method = raw_disposal

    delay = stream.read_uint16_le()
    transparent_index = stream.read_byte()

    terminator_offset = stream.position
    terminator = stream.read_byte()
    if terminator != 0:
        logger.warning("Graphic Control: байт 0x%02X на смещении %d вместо терминатора, пропущен",
                       terminator, terminator_offset)

    return GraphicControlBlock(
        disposal_method=disposal_method,
        user_input=bool(packed & MASK_USER_INPUT),
        transparent_index=transparent_index if packed & MASK_TRANSPARENCY_GIVEN else None,
        delay=delay
    )


def read_comment(stream: GIFStream) -> CommentBlock:
    return CommentBlock(read_sub_block_data(stream).decode('latin-1'))


def read_plain_text(stream: GIFStream) -> PlainTextBlock:
    """Читает Plain Text Extension"""
    _expect_block_size(stream, PLAIN_TEXT_SIZE, 'Plain Text')

    grid_x = stream.read_uint16_le()
    grid_y = stream.read_uint16_le()
    grid_width = stream.read_uint16_le()
    grid_height = stream.read_uint16_le()
    cell_width, cell_height, foreground_index, background_index = stream.read_bytes(4)
    text = read_sub_block_data(stream).decode('latin-1')

    return PlainTextBlock(grid_x, grid_y, grid_width, grid_height, cell_width, cell_height,
                          foreground_index, background_index, text)


def read_application(stream: GIFStream) -> ApplicationBlock:
    """Читает Application Extension"""
    _expect_block_size(stream, APPLICATION_SIZE, 'Application')

    identifier = stream.read_string(8)
    authentication_code = stream.read_bytes(3)
    sub_blocks = tuple(iter_sub_blocks(stream))
    return ApplicationBlock(identifier, authentication_code, sub_blocks)


def read_image_descriptor(stream: GIFStream, color_resolution: int, tolerate_out_of_sequence: bool = True,
                          max_pixels: Optional[int] = None) -> ImageDescriptorBlock:
    """Читает дескриптор изображения и распаковывает его данные"""
    offset = stream.position
    x = stream.read_uint16_le()
    y = stream.read_uint16_le()
    width = stream.read_uint16_le()
    height = stream.read_uint16_le()
    packed = stream.read_byte()

    if max_pixels is not None and width * height > max_pixels:
        raise ImageTooLarge(f"Изображение {width}x{height} больше {max_pixels} пикселей", offset=offset)

    interlaced = bool(packed & MASK_IMAGE_INTERLACED)
    local_color_table = None
    if packed & MASK_COLOR_TABLE_FOLLOW:
        local_color_table = read_color_table(
            stream,
            color_table_size(packed & MASK_COLOR_TABLE_SIZE),
            color_resolution,
            bool(packed & MASK_COLOR_TABLE_ORDERED)
        )

    min_code_size = stream.read_byte()
    result = decompress(stream, min_code_size, width, height, interlaced, tolerate_out_of_sequence)

    return ImageDescriptorBlock(
        x=x,
        y=y,
        width=width,
        height=height,
        interlaced=interlaced,
        local_color_table=local_color_table,
        min_code_size=min_code_size,
        color_indexes=bytes(result.indexes),
        end_code_seen=result.end_code_seen
    )
