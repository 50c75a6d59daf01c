import argparse

from torchframe.export import IdentityRGB, export_onnx, export_torchscript

TORCHSCRIPT_OUTPUT = "identity_rgb.pt"
ONNX_OUTPUT = "identity_rgb.onnx"


def parse_args():
    parser = argparse.ArgumentParser(description="Export a pass-through model for pipeline smoke tests")
    parser.add_argument("--output", default=TORCHSCRIPT_OUTPUT, help="TorchScript output path")
    parser.add_argument("--onnx", action="store_true", help="Also export an ONNX copy")
    parser.add_argument("--onnx-output", default=ONNX_OUTPUT)
    return parser.parse_args()


def main():
    args = parse_args()
    model = IdentityRGB()

    print("Exporting to TorchScript...")
    export_torchscript(model, args.output)

    if args.onnx:
        print("Exporting to ONNX...")
        export_onnx(model, args.onnx_output)

    print("Export complete.")


if __name__ == "__main__":
    main()
