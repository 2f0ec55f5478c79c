"""
Тесты для gif_animation.py
"""
import hashlib
import struct

import pytest

from gif_animation import AnimationCursor, GIFAnimation, compute_gif_size, decode_gif, fingerprint, frame_index_at, is_gif
from gif_errors import InvalidFormat, NoFramesDecoded
from gif_parser import Frame
from gif_samples import BLACK, WHITE, build_gif, graphic_control, image, netscape_loop

TWO_BY_TWO = build_gif(2, 2, [image(2, 2, [0, 1, 1, 0])], global_colors=[BLACK, WHITE])


def two_frames(first, second):
    return build_gif(1, 1, [image(1, 1, [first]), image(1, 1, [second])], global_colors=[BLACK, WHITE])


class TestDecodeGif:
    """Тесты декодирования анимации"""

    def test_decode(self):
        """Размеры, кадры и длительности"""
        data = build_gif(3, 2, [
            netscape_loop(5),
            graphic_control(delay=10), image(3, 2, [0] * 6),
            graphic_control(delay=20), image(3, 2, [1] * 6),
        ])
        animation = decode_gif(data)
        assert (animation.width, animation.height) == (3, 2)
        assert len(animation) == animation.frame_count == 2
        assert animation.durations == [100, 200]
        assert animation.total_duration == 300
        assert animation.delay(1) == 200
        assert animation.image(0).index == 0
        assert animation.loop_count == 5
        assert [frame.index for frame in animation] == [0, 1]

    def test_default_delay(self):
        """Длительность по умолчанию передаётся парсеру"""
        animation = decode_gif(TWO_BY_TWO, default_delay_ms=70)
        assert animation.durations == [70]

    def test_invalid_format(self):
        """Ошибки формата пробрасываются"""
        with pytest.raises(InvalidFormat):
            decode_gif(b'GIF99a' + b'\x00' * 7)

    def test_no_frames(self):
        """Анимация без кадров не создаётся"""
        with pytest.raises(NoFramesDecoded):
            decode_gif(build_gif(1, 1, []))
        with pytest.raises(NoFramesDecoded):
            GIFAnimation(1, 1, [])


class TestFingerprint:
    """Тесты отпечатка кадров"""

    def test_known_value(self):
        """Отпечаток одного кадра 2x2"""
        pixels = bytes([0, 0, 0, 255, 255, 255, 255, 255, 255, 255, 255, 255, 0, 0, 0, 255])
        expected = hashlib.md5(struct.pack('>I', 1) + struct.pack('>II', 2, 2) + pixels).hexdigest()
        assert decode_gif(TWO_BY_TWO).fingerprint() == expected

    def test_repeatable(self):
        """Один и тот же файл даёт один и тот же отпечаток"""
        assert decode_gif(TWO_BY_TWO).fingerprint() == decode_gif(bytes(TWO_BY_TWO)).fingerprint()

    def test_depends_on_frame_order(self):
        """Перестановка кадров меняет отпечаток"""
        assert decode_gif(two_frames(0, 1)).fingerprint() != decode_gif(two_frames(1, 0)).fingerprint()

    def test_depends_on_pixels(self):
        """Изменение пикселя меняет отпечаток"""
        assert decode_gif(two_frames(0, 1)).fingerprint() != decode_gif(two_frames(0, 0)).fingerprint()

    def test_depends_on_size(self):
        """Одинаковые байты пикселей при разных размерах"""
        pixels = ((BLACK + (255,), BLACK + (255,)),)
        wide = Frame(0, 2, 1, pixels, 100)
        tall = Frame(0, 1, 2, tuple(zip(*pixels)), 100)
        assert wide.to_bytes() == tall.to_bytes()
        assert fingerprint([wide]) != fingerprint([tall])


class TestFrameTiming:
    """Тесты выбора кадра по времени"""

    @pytest.mark.parametrize('elapsed,expected', [
        (0, 0), (99, 0), (100, 0), (101, 1), (299, 1), (300, 1), (301, 2), (599, 2), (600, 0), (750, 1),
    ])
    def test_frame_index_at(self, elapsed, expected):
        """На границе длительности кадр ещё показывается, следующий начинается после неё"""
        assert frame_index_at([100, 200, 300], elapsed) == expected

    def test_zero_total_duration(self):
        """Нулевая общая длительность"""
        assert frame_index_at([0, 0], 500) == 0

    def test_no_durations(self):
        """Пустой список длительностей"""
        with pytest.raises(ValueError):
            frame_index_at([], 0)

    def test_cursor_advances_one_frame_per_call(self):
        """Курсор не пропускает кадры при редких вызовах"""
        cursor = AnimationCursor([100, 200, 300])
        cursor.start(1000)
        assert cursor.frame_at(1000) == 0
        assert cursor.frame_at(1450) == 1
        assert cursor.frame_at(1450) == 2
        assert cursor.frame_at(1450) == 2

    def test_cursor_wraps_around(self):
        """После последнего кадра курсор возвращается к первому"""
        cursor = decode_gif(two_frames(0, 1)).cursor()
        cursor.start(0)
        assert cursor.frame_at(150) == 1
        assert cursor.frame_at(250) == 0

    def test_cursor_requires_frames(self):
        """Курсор без кадров"""
        with pytest.raises(ValueError):
            AnimationCursor([])


class TestGifSize:
    """Тесты определения размера GIF"""

    def test_compute_gif_size(self):
        """Размер логического экрана"""
        assert compute_gif_size(build_gif(300, 200, [image(1, 1, [0])])) == (300, 200)

    def test_compute_gif_size_not_gif(self):
        """Не GIF"""
        assert compute_gif_size(b'\x89PNG\r\n\x1a\n') is None
        assert compute_gif_size(b'GIF') is None

    def test_compute_gif_size_missing_file(self, tmp_path):
        """Файла нет"""
        assert compute_gif_size(str(tmp_path / 'missing.gif')) is None

    def test_is_gif(self):
        """Проверка сигнатуры и логического экрана"""
        assert is_gif(TWO_BY_TWO)
        assert not is_gif(b'not a gif at all')
