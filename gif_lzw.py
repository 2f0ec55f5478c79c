"""
Декомпрессия LZW для данных изображения GIF.

Коды читаются младшими битами вперёд (LSB-first) из цепочки подблоков,
которая читается лениво: код может начинаться в одном подблоке и
заканчиваться в следующем. Всё состояние декодера хранится в LZWState.
"""

import logging
from typing import Iterator, List, NamedTuple, Optional

from gif_stream import GIFStream, iter_sub_blocks, skip_sub_blocks

logger = logging.getLogger(__name__)

MAX_CODE_SIZE = 12
TABLE_SIZE = 1 << MAX_CODE_SIZE

# Проходы чересстрочного изображения: первая строка и шаг
PASS_START = (0, 4, 2, 1)
PASS_STEP = (8, 8, 4, 2)


def interlaced_rows(height: int) -> Iterator[int]:
    """Порядок строк чересстрочного изображения (4 прохода)"""
    for start, step in zip(PASS_START, PASS_STEP):
        yield from range(start, height, step)


class LZWResult(NamedTuple):
    indexes: bytearray
    end_code_seen: bool
    pixels_written: int
    out_of_sequence: int


class LZWState:
    """Состояние декодирования одного изображения"""

    def __init__(self, chunks: Iterator[bytes], min_code_size: int, width: int, height: int, interlaced: bool):
        self.chunks = chunks
        self.exhausted = False
        self.bit_buffer = 0
        self.bit_count = 0

        self.min_code_size = min_code_size
        self.clear_code = 1 << min_code_size
        self.end_code = self.clear_code + 1
        self.code_size = min_code_size + 1
        self.next_index = self.clear_code + 2
        self.previous_code: Optional[int] = None

        # Таблица строк: префикс, последний байт, первый байт и длина строки
        self.prefix: List[int] = [-1] * TABLE_SIZE
        self.suffix = bytearray(TABLE_SIZE)
        self.initial = bytearray(TABLE_SIZE)
        self.length: List[int] = [1] * TABLE_SIZE

        self.width = width
        self.indexes = bytearray(width * height)
        self.rows: Optional[List[int]] = list(interlaced_rows(height)) if interlaced else None
        self.written = 0
        self.out_of_sequence = 0


def reset_table(state: LZWState) -> None:
    """Возвращает таблицу к начальному состоянию (после кода очистки)"""
    for i in range(state.clear_code):
        state.prefix[i] = -1
        state.suffix[i] = i & 0xFF
        state.initial[i] = i & 0xFF
        state.length[i] = 1

    state.code_size = state.min_code_size + 1
    state.next_index = state.clear_code + 2
    state.previous_code = None


def read_code(state: LZWState) -> Optional[int]:
    """Читает следующий код текущей ширины или None, если данных не хватает"""
    while state.bit_count < state.code_size:
        if state.exhausted:
            return None
        chunk = next(state.chunks, None)
        if chunk is None:
            state.exhausted = True
            return None
        state.bit_buffer |= int.from_bytes(chunk, 'little') << state.bit_count
        state.bit_count += len(chunk) * 8

    code = state.bit_buffer & ((1 << state.code_size) - 1)
    state.bit_buffer >>= state.code_size
    state.bit_count -= state.code_size
    return code


def expand(state: LZWState, code: int) -> bytearray:
    """Разворачивает код в строку индексов"""
    size = state.length[code]
    string = bytearray(size)
    for i in range(size - 1, -1, -1):
        string[i] = state.suffix[code]
        code = state.prefix[code]
    return string


def add_entry(state: LZWState, prefix_code: int, suffix: int) -> int:
    """Добавляет строку prefix_code + suffix и возвращает её код"""
    index = state.next_index
    if index >= TABLE_SIZE:
        # Таблица заполнена: новые строки не добавляются до кода очистки
        return prefix_code

    state.prefix[index] = prefix_code
    state.suffix[index] = suffix
    state.initial[index] = state.initial[prefix_code]
    state.length[index] = state.length[prefix_code] + 1
    state.next_index += 1

    if state.next_index >= (1 << state.code_size) and state.code_size < MAX_CODE_SIZE:
        state.code_size += 1

    return index


def write_string(state: LZWState, string: bytearray) -> None:
    """Записывает строку индексов в плоскость изображения с учётом чересстрочности"""
    indexes = state.indexes
    total = len(indexes)
    width = state.width
    offset = 0

    while offset < len(string) and state.written < total:
        row_number, column = divmod(state.written, width)
        row = state.rows[row_number] if state.rows is not None else row_number
        count = min(width - column, len(string) - offset)
        start = row * width + column
        indexes[start:start + count] = string[offset:offset + count]
        offset += count
        state.written += count


def decompress(stream: GIFStream, min_code_size: int, width: int, height: int,
               interlaced: bool = False, tolerate_out_of_sequence: bool = True) -> LZWResult:
    """
    Декодирует цепочку подблоков в плоскость индексов width*height.

    Ошибки данных не прерывают разбор файла: при нехватке данных или раннем
    коде конца плоскость остаётся дописанной частично (нулями).
    Код больше следующего свободного индекса обрабатывается как случай KwKwK;
    с tolerate_out_of_sequence=False декодирование на таком коде прекращается.
    После остановки оставшиеся подблоки дочитываются до терминатора.
    """
    if not 1 <= min_code_size < MAX_CODE_SIZE:
        logger.warning("Недопустимый минимальный размер кода LZW: %d, данные изображения пропущены",
                       min_code_size)
        skip_sub_blocks(stream)
        return LZWResult(bytearray(width * height), False, 0, 0)

    chunks = iter_sub_blocks(stream)
    state = LZWState(chunks, min_code_size, width, height, interlaced)
    reset_table(state)
    end_code_seen = False
    total = len(state.indexes)

    while True:
        code = read_code(state)
        if code is None:
            break

        if code == state.clear_code:
            reset_table(state)
            continue

        if code == state.end_code:
            end_code_seen = True
            break

        if state.written >= total:
            # Плоскость заполнена, а кода конца нет: остальные данные не нужны
            break

        previous_code = state.previous_code

        if previous_code is None:
            # Первый код после очистки должен быть литералом
            if code >= state.clear_code:
                state.out_of_sequence += 1
                logger.warning("Код LZW %d вместо литерала после очистки, пропущен", code)
                continue
            string = expand(state, code)
        elif code < state.next_index:
            string = expand(state, code)
            add_entry(state, previous_code, string[0])
        else:
            if code != state.next_index:
                state.out_of_sequence += 1
                if not tolerate_out_of_sequence:
                    logger.warning("Код LZW вне последовательности: %d (ожидался не больше %d), декодирование остановлено",
                                   code, state.next_index)
                    break
                if state.out_of_sequence == 1:
                    logger.warning("Код LZW вне последовательности: %d (ожидался не больше %d)",
                                   code, state.next_index)
            string = expand(state, previous_code)
            string.append(string[0])
            code = add_entry(state, previous_code, string[0])

        write_string(state, string)
        state.previous_code = code

    # Дочитываем подблоки, чтобы поток встал на начало следующего блока
    for _ in chunks:
        pass

    if not end_code_seen:
        if state.written < total:
            logger.warning("Данные LZW закончились: записано %d из %d пикселей", state.written, total)
        else:
            logger.debug("Изображение заполнено без кода конца LZW")

    return LZWResult(state.indexes, end_code_seen, state.written, state.out_of_sequence)
