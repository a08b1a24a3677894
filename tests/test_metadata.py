"""
Tests for the kernel argument metadata reader.
"""

import pytest

from vpu_custom import ArgFlags, MalformedBinary, MetadataParseError, NeoMetadataParser, deduce_kernel_arguments
from vpu_custom.metadata import MetadataArgument, MetadataKernel


def _parser(make_metadata, kernels):
    return NeoMetadataParser(*make_metadata(kernels))


class TestNeoMetadataParser:
    """Tests for decoding .neo_metadata records."""

    def test_kernel_lookup(self, make_metadata):
        """Test kernel count and lookup by name."""
        parser = _parser(make_metadata, [("first", []), ("second", [("a", 0)])])

        assert parser.kernel_count() == 2
        assert parser.find_kernel("second") == 1
        assert parser.find_kernel("third") is None

    def test_arg_count_includes_sentinel(self, make_metadata):
        """Test arg_count reports one more than the real arguments."""
        parser = _parser(make_metadata, [("k", [("a", 0), ("b", 0)])])
        assert parser.get_kernel(0).arg_count == 3

    def test_argument_records(self, make_metadata):
        """Test argument flags and names decode per record."""
        parser = _parser(make_metadata, [("k", [("a", 0), ("tmp", int(ArgFlags.GeneratedPrePost))])])
        kernel = parser.get_kernel(0)

        a = parser.get_argument(kernel, 0)
        tmp = parser.get_argument(kernel, 1)

        assert parser.get_name(a) == "a"
        assert not a.flags & ArgFlags.GeneratedPrePost
        assert tmp.flags & ArgFlags.GeneratedPrePost
        assert parser.get_argument(kernel, 5) is None

    def test_name_offset_out_of_range(self, make_metadata):
        """Test get_name on a name outside the string table."""
        parser = _parser(make_metadata, [("k", [("a", 0)])])
        arg = MetadataArgument(ArgFlags.NoFlags, 10_000, 0, 0, 0, 0)
        with pytest.raises(MetadataParseError, match="outside"):
            parser.get_name(arg)

    def test_header_too_small(self):
        """Test a section shorter than its header."""
        with pytest.raises(MalformedBinary):
            NeoMetadataParser(b"\x01\x00", b"\0")

    def test_kernel_table_past_end(self, make_metadata):
        """Test a kernel table cut off by the end of the section."""
        metadata, strings = make_metadata([("k", [("a", 0)])])
        with pytest.raises(MalformedBinary, match="kernel table"):
            NeoMetadataParser(metadata[:26], strings)

    def test_argument_table_past_end(self, make_metadata):
        """Test an argument table cut off by the end of the section."""
        metadata, strings = make_metadata([("k", [("a", 0)])])
        with pytest.raises(MalformedBinary, match="argument table"):
            NeoMetadataParser(metadata[:-4], strings)


class TestDeduceKernelArguments:
    """Tests for the dispatcher-visible argument list."""

    def test_skips_hoisted_and_sentinel(self, make_metadata):
        """Test hoisted arguments are dropped and order is kept."""
        hoisted = int(ArgFlags.GeneratedPrePost)
        parser = _parser(make_metadata, [("k", [
            ("src", 0), ("pre", hoisted), ("dst", 0), ("post", hoisted), ("n", 0),
        ])])
        assert deduce_kernel_arguments(parser, 0) == ("src", "dst", "n")

    def test_no_arguments(self, make_metadata):
        """Test a kernel with only the sentinel argument."""
        parser = _parser(make_metadata, [("k", [])])
        assert deduce_kernel_arguments(parser, 0) == ()

    def test_undecodable_argument(self):
        """Test a query returning no record for an argument."""
        class BrokenQuery:
            def get_kernel(self, kernel_id):
                return MetadataKernel(name=0, arg_count=3, arg_index=0)

            def get_argument(self, kernel, index):
                if index == 0:
                    return MetadataArgument(ArgFlags.NoFlags, 0, 0, 0, 0, 0)
                return None

            def get_name(self, arg):
                return "a"

        with pytest.raises(MetadataParseError, match="custom layer elf"):
            deduce_kernel_arguments(BrokenQuery(), 0)
