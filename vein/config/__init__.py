"""Proxy configuration: sections, database backend selection, the delay policy and the TOML loader."""