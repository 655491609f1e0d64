import asyncio
import logging
import os
import sys

from sse_stream import StreamClient, StreamConfig

logger = logging.getLogger(__name__)


async def main():
    logging_config = {
        "format": "%(asctime)s - %(levelname)s - %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
        "level": logging.DEBUG if "--debug" in sys.argv else logging.INFO,
    }
    if "--logfile" in sys.argv:
        logging_config["filename"] = "sse_stream.log"
        logging_config["filemode"] = "w+"
        logging_config["encoding"] = "utf-8"
    logging.basicConfig(**logging_config)

    config_file = "config.json"
    if not os.path.exists(config_file):
        default = StreamConfig()
        with open(config_file, "w+", encoding="utf-8") as fp:
            fp.write(default.model_dump_json(indent=4))
        print("Edit config.json and relaunch app")
        sys.exit(0)

    with open(config_file, "r", encoding="utf-8") as fp:
        config = StreamConfig.model_validate_json(fp.read())

    async with StreamClient.from_config(config) as client:
        async for message in client:
            print(f"Got server event!: {message}")
        if client.last_error is not None:
            logger.critical("stream stopped: %s", client.last_error)
    print("Done.")


asyncio.run(main())
