"""
Запись PNG файлов без использования готовых библиотек.
Сохраняет кадр GIF как 8-битный RGBA PNG.
"""

import struct
import zlib
from typing import Sequence

from gif_color_table import RGBA
from gif_parser import Frame


class PNGWriter:
    """Класс для записи PNG файлов"""

    PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
    COLOR_TYPE_RGBA = 6

    def __init__(self, width: int, height: int, pixels: Sequence[Sequence[RGBA]]):
        self.width = width
        self.height = height
        self.pixels = pixels

    @classmethod
    def from_frame(cls, frame: Frame) -> 'PNGWriter':
        return cls(frame.width, frame.height, frame.pixels)

    def create_ihdr_chunk(self) -> bytes:
        """Создаёт IHDR chunk: размеры, 8 бит на канал, RGBA, без чересстрочности"""
        data = struct.pack('>IIBBBBB', self.width, self.height, 8, self.COLOR_TYPE_RGBA, 0, 0, 0)
        return self.create_chunk(b'IHDR', data)

    def create_idat_chunk(self, image_data: bytes) -> bytes:
        return self.create_chunk(b'IDAT', zlib.compress(image_data, level=6))

    def create_iend_chunk(self) -> bytes:
        return self.create_chunk(b'IEND', b'')

    def create_chunk(self, chunk_type: bytes, chunk_data: bytes) -> bytes:
        """Создаёт PNG chunk с контрольной суммой CRC32"""
        crc = zlib.crc32(chunk_type + chunk_data) & 0xFFFFFFFF
        return struct.pack('>I', len(chunk_data)) + chunk_type + chunk_data + struct.pack('>I', crc)

    def prepare_image_data(self) -> bytes:
        """Строки пикселей, каждая с байтом фильтра 0"""
        image_data = bytearray()

        for y in range(self.height):
            image_data.append(0)
            for pixel in self.pixels[y][:self.width]:
                image_data.extend(pixel)

        return bytes(image_data)

    def to_bytes(self) -> bytes:
        """Содержимое PNG файла"""
        return b''.join((
            self.PNG_SIGNATURE,
            self.create_ihdr_chunk(),
            self.create_idat_chunk(self.prepare_image_data()),
            self.create_iend_chunk(),
        ))

    def write(self, file_path: str):
        """Записывает PNG файл"""
        with open(file_path, 'wb') as f:
            f.write(self.to_bytes())
