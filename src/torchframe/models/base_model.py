class BaseModel:
    """
    Abstract loaded-model interface.
    All serialized graph backends (TorchScript, ONNX) must implement this.
    """

    def __init__(self, path, device):
        self.path = path
        self.device = device

    def forward(self, tensor):
        """
        Run the graph on one (1,3,H,W) tensor and return one tensor.
        """
        raise NotImplementedError

    def __call__(self, tensor):
        return self.forward(tensor)

    def __repr__(self):
        return f"{type(self).__name__}(path={self.path!r}, device={self.device})"
