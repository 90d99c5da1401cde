"""Tests for CLI interface."""

import json

from click.testing import CliRunner

from radixpack.schema.cli import cli


def describe_info_command():
    def prints_a_table(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", example_schema_path])
        expect(result.exit_code) == 0
        expect(result.output).includes("Point")
        expect(result.output).includes("51 bits")
        expect(result.output).includes("All types fit in 64 bits")

    def prints_json(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", example_schema_path, "--json"])
        expect(result.exit_code) == 0
        data = json.loads(result.output)
        expect(data["max_width"]) == 64
        expect(data["types"]["Point"]) == {
            "kind": "struct",
            "possibilities": "160",
            "packed_width": 8,
            "aligned_size": 4,
            "fits": True,
        }

    def flags_types_over_the_limit(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", example_schema_path, "--json", "--max-width", "32"])
        expect(result.exit_code) == 0
        data = json.loads(result.output)
        expect(data["types"]["Reading"]["fits"]) == False
        expect(data["types"]["Command"]["fits"]) == True

    def fails_on_invalid_schemas(expect, tmp_path):
        schema = tmp_path / "bad.radix"
        schema.write_text("struct A { x: Missing }", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", str(schema)])
        expect(result.exit_code) == 1
        expect(result.output).includes("unknown type Missing")

    def fails_on_missing_files(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", str(tmp_path / "missing.radix")])
        expect(result.exit_code) == 1
        expect(result.output).includes("Error")


def describe_gen_command():
    def generates_python_code(expect, example_schema_path, tmp_path):
        output_file = tmp_path / "example_types.py"
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", example_schema_path, "-o", str(output_file)])
        expect(result.exit_code) == 0
        content = output_file.read_text(encoding="utf-8")
        expect(content).includes("class Point(Struct)")
        expect(content).includes("@dataclass")
        expect(content).includes("from radixpack.packing import")

    def uses_the_runtime_import(expect, example_schema_path, tmp_path):
        output_file = tmp_path / "example_types.py"
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["gen", "-i", example_schema_path, "-o", str(output_file), "--runtime-import", "radixpack"],
        )
        expect(result.exit_code) == 0
        expect(output_file.read_text(encoding="utf-8")).includes("from radixpack import")


def describe_pack_command():
    def prints_decimal_and_hex(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["pack", "-i", example_schema_path, "-t", "Point", '{"a": -2, "b": "D", "c": 1}']
        )
        expect(result.exit_code) == 0
        expect(result.output.strip()) == "94 0x5e"

    def packs_unions(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["pack", "-i", example_schema_path, "-t", "Event", '{"tag": "c", "value": true}']
        )
        expect(result.exit_code) == 0
        expect(result.output.strip()) == "15 0xf"

    def rejects_invalid_values(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["pack", "-i", example_schema_path, "-t", "Point", '{"a": 9, "b": "D", "c": 1}']
        )
        expect(result.exit_code) == 1
        expect(result.output).includes("Error")

    def rejects_unknown_types(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["pack", "-i", example_schema_path, "-t", "Nope", "{}"])
        expect(result.exit_code) == 1
        expect(result.output).includes("Unknown type: Nope")

    def enforces_the_width_limit(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["pack", "-i", example_schema_path, "-t", "Point", "--max-width", "4", '{"a": 0, "b": "A", "c": null}'],
        )
        expect(result.exit_code) == 1
        expect(result.output).includes("more than 4")


def describe_unpack_command():
    def prints_json(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["unpack", "-i", example_schema_path, "-t", "Point", "94"])
        expect(result.exit_code) == 0
        expect(json.loads(result.output)) == {"a": -2, "b": "D", "c": 1}

    def accepts_hex_codes(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["unpack", "-i", example_schema_path, "-t", "Event", "0xd"])
        expect(result.exit_code) == 0
        expect(json.loads(result.output)) == {"tag": "b", "value": "E"}

    def keeps_unknown_enum_values(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["unpack", "-i", example_schema_path, "-t", "Status", "200"])
        expect(result.exit_code) == 0
        expect(json.loads(result.output)) == 200

    def rejects_codes_out_of_range(expect, example_schema_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["unpack", "-i", example_schema_path, "-t", "Point", "160"])
        expect(result.exit_code) == 1
        expect(result.output).includes("outside")
