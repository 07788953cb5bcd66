from .module import Module, InputSpec
