"""
Тесты для gif_blocks.py
"""
import io
import logging

import pytest

from gif_blocks import (
    END_BLOCK,
    BlockKind,
    DisposalMethod,
    read_next_block,
)
from gif_errors import ImageTooLarge, MalformedBlock, TruncatedStream, UnknownBlockType, UnknownExtensionSubType
from gif_samples import GREEN, RED, application, comment, graphic_control, image, netscape_loop, plain_text
from gif_stream import GIFStream


def read_block(data: bytes, color_resolution: int = 8):
    stream = GIFStream(io.BytesIO(data))
    return read_next_block(stream, color_resolution), stream


class TestDispatcher:
    """Тесты выбора блока по байту типа"""

    def test_end_block(self):
        """0x3B - конец потока, больше ничего не читается"""
        block, stream = read_block(b';\xFF')
        assert block is END_BLOCK
        assert block.kind is BlockKind.END
        assert stream.position == 1

    def test_ignore_block(self):
        """Нулевой байт типа не является ошибкой"""
        block, stream = read_block(b'\x00;')
        assert block.kind is BlockKind.IGNORE
        assert stream.position == 1

    def test_unknown_block_type(self):
        """Неизвестный тип блока"""
        with pytest.raises(UnknownBlockType) as error:
            read_block(b'\x99')
        assert error.value.offset == 0

    def test_unknown_extension_sub_type(self):
        """Неизвестный подтип расширения"""
        with pytest.raises(UnknownExtensionSubType) as error:
            read_block(b'\x21\x42\x00')
        assert isinstance(error.value, UnknownBlockType)
        assert error.value.offset == 1

    def test_empty_stream(self):
        """Нет даже байта типа"""
        with pytest.raises(TruncatedStream):
            read_block(b'')


class TestGraphicControl:
    """Тесты Graphic Control Extension"""

    def test_fields(self):
        """Способ утилизации, прозрачность и задержка"""
        block, stream = read_block(graphic_control(disposal=2, delay=7, transparent_index=3, user_input=True) + b';')
        assert block.kind is BlockKind.GRAPHIC_CONTROL
        assert block.disposal_method is DisposalMethod.RESTORE_BACKGROUND
        assert block.transparent_index == 3
        assert block.user_input
        assert block.delay == 7
        assert block.duration(100) == 70
        assert stream.read_byte() == 0x3B

    def test_no_transparency(self):
        """Без флага прозрачности индекс не задан"""
        block, _ = read_block(graphic_control(disposal=1))
        assert block.transparent_index is None
        assert block.disposal_method is DisposalMethod.DO_NOT_DISPOSE
        assert not block.user_input

    def test_zero_delay_uses_default(self):
        """Нулевая задержка заменяется длительностью по умолчанию"""
        block, _ = read_block(graphic_control(delay=0))
        assert block.duration(100) == 100
        assert block.duration(40) == 40

    def test_invalid_size(self):
        """Размер блока 5 вместо 4"""
        with pytest.raises(MalformedBlock) as error:
            read_block(b'\x21\xF9\x05\x00\x00\x00\x00\x00\x00')
        assert error.value.offset == 2

    def test_reserved_disposal_method(self, caplog):
        """Зарезервированный способ утилизации сохраняется как число"""
        with caplog.at_level(logging.WARNING, logger='gif_blocks'):
            block, _ = read_block(b'\x21\xF9\x04' + bytes([5 << 2]) + b'\x00\x00\x00\x00')
        assert block.disposal_method == 5
        assert not isinstance(block.disposal_method, DisposalMethod)
        assert 'Зарезервированный' in caplog.text

    def test_missing_terminator(self, caplog):
        """Ненулевой байт вместо терминатора пропускается, следующий блок читается как обычно"""
        with caplog.at_level(logging.WARNING, logger='gif_blocks'):
            block, stream = read_block(b'\x21\xF9\x04\x00\x0A\x00\x00\x05;')
        assert 'терминатора' in caplog.text
        assert block.delay == 10
        assert stream.read_byte() == 0x3B

    def test_truncated(self):
        """Обрыв внутри фиксированных полей"""
        with pytest.raises(TruncatedStream):
            read_block(b'\x21\xF9\x04\x00\x0A')


class TestTextBlocks:
    """Тесты комментариев и простого текста"""

    def test_comment_single_sub_block(self):
        """Подблоки {3 байта},{0 байт}: три символа, нулевой подблок - терминатор"""
        block, stream = read_block(b'\x21\xFE\x03abc\x00;')
        assert block.kind is BlockKind.COMMENT
        assert block.text == 'abc'
        assert len(block.text) == 3
        assert stream.read_byte() == 0x3B

    def test_comment_several_sub_blocks(self):
        """Комментарий длиннее одного подблока"""
        text = 'x' * 300 + '\xe9'
        block, _ = read_block(comment(text))
        assert block.text == text

    def test_plain_text(self):
        """Поля и текст Plain Text Extension"""
        block, stream = read_block(plain_text('Hi', grid=(1, 2, 30, 40), cell=(5, 6), foreground=3, background=4) + b';')
        assert block.kind is BlockKind.PLAIN_TEXT
        assert (block.grid_x, block.grid_y, block.grid_width, block.grid_height) == (1, 2, 30, 40)
        assert (block.cell_width, block.cell_height) == (5, 6)
        assert block.foreground_index == 3
        assert block.background_index == 4
        assert block.text == 'Hi'
        assert stream.read_byte() == 0x3B

    def test_plain_text_invalid_size(self):
        """Размер Plain Text должен быть 12"""
        with pytest.raises(MalformedBlock):
            read_block(b'\x21\x01\x0B' + b'\x00' * 11 + b'\x00')


class TestApplication:
    """Тесты Application Extension"""

    def test_netscape_loop_count(self):
        """Число повторов из NETSCAPE2.0"""
        block, stream = read_block(netscape_loop(3) + b';')
        assert block.kind is BlockKind.APPLICATION
        assert block.identifier == 'NETSCAPE'
        assert block.authentication_code == b'2.0'
        assert block.loop_count == 3
        assert stream.read_byte() == 0x3B

    def test_infinite_loop(self):
        """0 означает бесконечный повтор"""
        block, _ = read_block(netscape_loop(0))
        assert block.loop_count == 0

    def test_other_application(self):
        """Данные другого приложения"""
        block, _ = read_block(application(b'XMP Data', b'XMP', [b'abc', b'de']))
        assert block.identifier == 'XMP Data'
        assert block.sub_blocks == (b'abc', b'de')
        assert block.data == b'abcde'
        assert block.loop_count is None

    def test_invalid_size(self):
        """Размер Application должен быть 11"""
        with pytest.raises(MalformedBlock):
            read_block(b'\x21\xFF\x0A' + b'\x00' * 10 + b'\x00')


class TestImageDescriptor:
    """Тесты Image Descriptor"""

    def test_fields_and_indexes(self):
        """Координаты, размеры и распакованные индексы"""
        block, stream = read_block(image(2, 2, [0, 1, 1, 0], x=3, y=4) + b';')
        assert block.kind is BlockKind.IMAGE_DESCRIPTOR
        assert (block.x, block.y, block.width, block.height) == (3, 4, 2, 2)
        assert not block.interlaced
        assert block.local_color_table is None
        assert block.min_code_size == 2
        assert block.color_indexes == bytes([0, 1, 1, 0])
        assert block.end_code_seen
        assert stream.read_byte() == 0x3B

    def test_local_color_table(self):
        """Локальная таблица цветов"""
        block, _ = read_block(image(2, 1, [1, 0], local_colors=[RED, GREEN]))
        assert block.local_color_table.size == 2
        assert block.local_color_table.rgb(1) == GREEN
        assert block.local_color_table.resolution == 8

    def test_interlaced_flag(self):
        """Флаг чересстрочности"""
        block, _ = read_block(image(1, 3, [1, 2, 3], interlaced=True))
        assert block.interlaced
        assert block.color_indexes == bytes([1, 2, 3])

    def test_truncated_descriptor(self):
        """Обрыв в полях дескриптора"""
        with pytest.raises(TruncatedStream):
            read_block(b'\x2C\x00\x00\x01')

    def test_blocks_are_immutable(self):
        """Блоки не меняются после чтения"""
        block, _ = read_block(image(1, 1, [0]))
        with pytest.raises(AttributeError):
            block.x = 5

    def test_max_pixels(self):
        """Изображение больше допустимого числа пикселей не распаковывается"""
        stream = GIFStream(io.BytesIO(image(4, 4, [0] * 16) + b';'))
        with pytest.raises(ImageTooLarge) as error:
            read_next_block(stream, 8, max_pixels=15)
        assert error.value.offset == 1

    def test_max_pixels_exact(self):
        """Изображение ровно на границе допустимо"""
        stream = GIFStream(io.BytesIO(image(4, 4, [0] * 16) + b';'))
        block = read_next_block(stream, 8, max_pixels=16)
        assert block.color_indexes == bytes(16)
