from __future__ import annotations

from typing import Any

import yaml

from cyberrisk_cli.formatters.base import BaseFormatter


class YamlFormatter(BaseFormatter):
    content_type = "application/yaml"

    def dumps(self, data: Any) -> str:
        return yaml.dump(
            data,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    def file_extension(self) -> str:
        return ".yaml"
