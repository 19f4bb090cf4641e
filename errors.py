class HuffmanError(Exception):
    pass

class IOFailure(HuffmanError, OSError): # any failure talking to a stream
    pass

class StreamOpenFailure(IOFailure):
    pass

class StreamReadFailure(IOFailure):
    def __init__(self, message, partial=None):
        super().__init__(message)
        self.partial = partial # whatever was accumulated before the read failed

class StreamWriteFailure(IOFailure):
    pass

class MissingCodeError(HuffmanError, KeyError):
    def __init__(self, symbol):
        super().__init__(symbol)
        self.symbol = symbol

    def __str__(self):
        return f"no Huffman code for symbol {self.symbol!r}"

class CorruptStreamError(HuffmanError, ValueError):
    pass

class EmptyInputResult(HuffmanError, ValueError):
    pass
