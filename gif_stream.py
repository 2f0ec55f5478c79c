"""
Чтение примитивов GIF потока: байты, 16-битные числа, строки и подблоки.
Поток читается только вперёд, позиция считается для сообщений об ошибках.
"""

import struct
from typing import BinaryIO, Iterator, NamedTuple

from gif_errors import TruncatedStream


class GIFStream:
    """Обёртка над бинарным файлом, считающая прочитанные байты"""

    def __init__(self, file: BinaryIO):
        self.file = file
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    def read_byte(self) -> int:
        """Читает один байт"""
        byte = self.file.read(1)
        if not byte:
            raise TruncatedStream("Неожиданный конец файла", offset=self._position)
        self._position += 1
        return byte[0]

    def read_bytes(self, count: int) -> bytes:
        """Читает ровно count байт"""
        data = self.file.read(count)
        if len(data) < count:
            offset = self._position
            self._position += len(data)
            raise TruncatedStream(
                f"Неожиданный конец файла: нужно {count} байт, прочитано {len(data)}",
                offset=offset
            )
        self._position += count
        return data

    def read_uint16_le(self) -> int:
        """Читает 16-битное беззнаковое число (little-endian)"""
        return struct.unpack('<H', self.read_bytes(2))[0]

    def read_string(self, size: int) -> str:
        """Читает строку из size однобайтовых символов"""
        return self.read_bytes(size).decode('latin-1')


class SubBlock(NamedTuple):
    length: int
    data: bytes


# Подблок нулевой длины завершает любую цепочку подблоков
TERMINATOR = SubBlock(0, b'')


def read_sub_block(stream: GIFStream) -> SubBlock:
    """Читает один подблок: байт длины и данные"""
    length = stream.read_byte()
    if length == 0:
        return TERMINATOR
    return SubBlock(length, stream.read_bytes(length))


def iter_sub_blocks(stream: GIFStream) -> Iterator[bytes]:
    """Генерирует данные подблоков до терминатора (терминатор поглощается)"""
    while True:
        sub_block = read_sub_block(stream)
        if sub_block is TERMINATOR:
            return
        yield sub_block.data


def read_sub_block_data(stream: GIFStream) -> bytes:
    """Склеивает данные всей цепочки подблоков"""
    return b''.join(iter_sub_blocks(stream))


def skip_sub_blocks(stream: GIFStream) -> None:
    """Пропускает цепочку подблоков"""
    for _ in iter_sub_blocks(stream):
        pass
