import pytest

from pdfcrypt import generic


def test_reference():
    ref = generic.Reference(12)
    assert ref.generation == 0
    assert str(ref) == '12 0 R'
    assert ref == generic.Reference(12, 0)
    assert len({ref, generic.Reference(12, 0), generic.Reference(12, 1)}) == 2


@pytest.mark.parametrize('idnum,generation', [(-1, 0), (1, -1)])
def test_reference_negative(idnum, generation):
    with pytest.raises(ValueError):
        generic.Reference(idnum, generation)


def test_dictionary_key_normalisation():
    d = generic.DictionaryObject({'V': 2, '/R': 3})
    assert d['/V'] == 2
    assert d['R'] == 3
    assert 'V' in d and '/V' in d
    assert 5 not in d
    d['Length'] = 128
    assert list(d.keys()) == ['/V', '/R', '/Length']
    del d['Length']
    assert d.get('/Length', 40) == 40
    assert d.get_and_apply('/V', lambda x: x * 2) == 4
    assert d.get_and_apply('/Missing', int, default=7) == 7
    d.update({'StmF': '/StdCF'}, EncryptMetadata=False)
    assert all(isinstance(k, generic.NameObject) for k in d.keys())
    assert d['/EncryptMetadata'] is False


def test_text_string_original_bytes():
    assert generic.TextStringObject('abc').original_bytes == b'abc'
    assert generic.TextStringObject('x', original_bytes=b'\x00\xff') \
        .original_bytes == b'\x00\xff'
    # not representable in PDFDocEncoding
    assert generic.TextStringObject('中').original_bytes \
        == b'\xfe\xff' + '中'.encode('utf-16be')


def test_pdfdoc_encoding():
    assert generic.encode_pdfdocencoding('€•') == b'\xa0\x80'
    assert generic.decode_pdfdocencoding(b'\xa0\x80') == '€•'
    with pytest.raises(UnicodeEncodeError):
        generic.encode_pdfdocencoding('中')
    with pytest.raises(UnicodeDecodeError):
        generic.decode_pdfdocencoding(b'\x7f')


def test_boolean_object():
    assert generic.BooleanObject(True) == True  # noqa: E712
    assert not generic.BooleanObject(0)
    assert generic.BooleanObject(False) == generic.BooleanObject(False)
