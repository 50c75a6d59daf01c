import argparse
import logging
import time

import cv2

from torchframe.background import BackgroundPipeline
from torchframe.config import DEFAULT_DEVICE, DEFAULT_MODEL, ImageDownload, PipelineConfig
from torchframe.pipeline import FramePipeline, OutputBuffers
from torchframe.timer import FPSTimer
from torchframe.video_source import VideoFrameInput, VideoSource, to_display

VIDEO_PATH = "input.mp4"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Real-time per-frame model inference")
    parser.add_argument("--video", default=VIDEO_PATH, help="Input video path")
    parser.add_argument("--model", default=DEFAULT_MODEL, help="Model file (.pt/.ts TorchScript or .onnx)")
    parser.add_argument(
        "--image-download",
        default=ImageDownload.INSTANT.value,
        choices=[m.value for m in ImageDownload],
        help="When the input buffer is materialised"
    )
    parser.add_argument(
        "--device",
        default=DEFAULT_DEVICE,
        choices=["auto", "cuda", "cpu"],
        help="PyTorch device selection"
    )
    parser.add_argument("--prefetch", type=int, default=8, help="Reader prefetch queue size (0 disables)")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = full video)")
    parser.add_argument("--timing-interval", type=int, default=120, help="Frames between timing reports")
    parser.add_argument("--no-display", action="store_true", help="Disable cv2.imshow for pure throughput testing")
    parser.add_argument(
        "--background",
        action="store_true",
        help="Run inference on a worker thread and show the latest finished frame"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def show(output, fps):
    frame = to_display(output.cpu_pixel_data[output.new_cpu_pixel_data_location])
    cv2.putText(frame, f"FPS: {fps:.2f}", (20, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 255, 0), 2)
    cv2.imshow("torchframe", frame)
    return cv2.waitKey(1) & 0xFF != 27


def fresh_result(done, seen):
    """(result, output) for a background frame not handled yet, else (None, None).

    latest() keeps returning the last finished frame until a newer one lands;
    seen holds the execute count of the frame already handled.
    """
    if done is None or done.result.execute_count in seen:
        return None, None
    seen.clear()
    seen.add(done.result.execute_count)
    return done.result, done.output


def run(args):
    config = PipelineConfig(
        model_file=args.model,
        image_download=ImageDownload.parse(args.image_download),
    )
    pipeline = FramePipeline(config, device=args.device)
    print(f"PyTorch device : {pipeline.device}")

    worker = BackgroundPipeline(pipeline) if args.background else None
    source = VideoSource(args.video, prefetch=args.prefetch)
    timer = FPSTimer()

    frame_idx = 0
    failed = 0
    infer_ms = 0.0
    last_error = ""
    seen = set()

    try:
        while True:
            ret, frame = source.read()
            if not ret:
                break
            frame_input = VideoFrameInput.prepared(frame, config.image_download)

            t0 = time.perf_counter()
            if worker is not None:
                worker.submit(frame_input, config)
                result, output = fresh_result(worker.latest(), seen)
            else:
                output = OutputBuffers.for_input(frame_input)
                result = pipeline.execute(output, frame_input)
            infer_ms += (time.perf_counter() - t0) * 1000.0
            fps = timer.update()

            if result is not None and not result.ok:
                failed += 1
                if result.message != last_error:
                    print(f"[error] code={int(result.error_code)} {result.message}")
                last_error = result.message
            elif result is not None:
                last_error = ""
                if not args.no_display and not show(output, fps):
                    break

            frame_idx += 1
            if args.max_frames > 0 and frame_idx >= args.max_frames:
                break

            if args.timing_interval > 0 and frame_idx % args.timing_interval == 0:
                print(
                    f"[timing] frames={frame_idx} "
                    f"infer={infer_ms / frame_idx:.2f}ms "
                    f"fps={fps:.2f} "
                    f"failed={failed} "
                    f"{pipeline.info_table()[0][0]}={pipeline.info_table()[0][1]}"
                )
    finally:
        source.release()
        if worker is not None:
            worker.close()
        else:
            pipeline.close()
        if not args.no_display:
            cv2.destroyAllWindows()

    return 0 if failed == 0 else 1


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())
