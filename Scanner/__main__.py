from Scanner.cli import main

raise SystemExit(main())
