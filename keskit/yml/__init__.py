"""YAML server configuration: environment-expanding values, older layouts and validation."""