class QCBMError(Exception):
    pass


class ConfigurationError(QCBMError):
    # bad circuit layout: nlayer < 1, qubit out of range, control == target
    pass


class ShapeMismatchError(QCBMError):
    # blocks of different qubit counts composed together
    pass


class ParameterCountMismatchError(QCBMError):
    def __init__(self, expected, got):
        super().__init__(f"expected {expected} parameters, got {got}")
        self.expected = expected
        self.got = got


class NumericalError(QCBMError):
    pass
