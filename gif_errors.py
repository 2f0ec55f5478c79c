"""
Ошибки декодера GIF.
Каждая ошибка знает смещение в байтах и/или номер блока, где она возникла.
"""

from typing import Optional


class GIFError(ValueError):
    """Базовая ошибка разбора GIF потока"""

    def __init__(self, message: str, offset: Optional[int] = None, block_index: Optional[int] = None):
        self.message = message
        self.offset = offset
        self.block_index = block_index
        super().__init__(message)

    def __str__(self) -> str:
        context = []
        if self.offset is not None:
            context.append(f"смещение {self.offset}")
        if self.block_index is not None:
            context.append(f"блок {self.block_index}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidFormat(GIFError):
    """Неверная сигнатура или версия"""


class TruncatedStream(GIFError, EOFError):
    """Поток закончился раньше, чем поле фиксированного размера"""


class MalformedBlock(GIFError):
    """Объявленный размер фиксированных полей не совпадает со стандартом"""


class UnknownBlockType(GIFError):
    """Неизвестный тип блока"""


class UnknownExtensionSubType(UnknownBlockType):
    """Неизвестный подтип блока расширения"""


class NoFramesDecoded(GIFError):
    """Поток разобран, но не содержит ни одного изображения"""


class ImageTooLarge(GIFError):
    """Размер экрана или изображения превышает допустимое число пикселей"""
